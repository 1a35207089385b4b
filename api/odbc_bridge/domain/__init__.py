"""Capa de dominio."""
