"""Constantes de la aplicacion."""
