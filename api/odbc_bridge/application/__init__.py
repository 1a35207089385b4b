"""Capa de aplicacion: servicios, casos de uso y DTOs."""
