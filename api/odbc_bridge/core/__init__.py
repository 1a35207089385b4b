"""Configuracion, eventos y construccion de componentes."""
