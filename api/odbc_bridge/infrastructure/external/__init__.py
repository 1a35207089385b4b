"""Integraciones externas."""
