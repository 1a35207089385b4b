"""Dependencias de FastAPI."""
