"""Capa HTTP (FastAPI)."""
