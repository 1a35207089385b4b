"""Middlewares de la aplicacion."""
