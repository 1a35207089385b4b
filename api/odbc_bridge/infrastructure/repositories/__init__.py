"""Implementaciones de repositorios sobre SQLAlchemy."""
