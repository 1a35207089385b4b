"""
Entrega HTTP de los datos transformados.
"""
from .delivery_client import DeliveryClient

__all__ = ["DeliveryClient"]
