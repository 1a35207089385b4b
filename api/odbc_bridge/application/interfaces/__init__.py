"""
Interfaces (protocolos) que la capa de aplicacion consume.
"""
from .config_store import ConfigStore
from .sync_runner import SyncRunner, SyncSummary

__all__ = ["ConfigStore", "SyncRunner", "SyncSummary"]
