"""Utilidades, constantes y excepciones compartidas."""
