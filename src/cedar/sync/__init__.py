"""
Módulo de sincronización con Salesforce.
"""

from cedar.sync.engine import PropertySync, SyncResult, ConnectionCheck

__all__ = ["PropertySync", "SyncResult", "ConnectionCheck"]
