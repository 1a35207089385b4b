"""Capa de infraestructura: ODBC, HTTP, persistencia y scheduling."""
