"""
Módulo de base de datos.

Provee acceso a Supabase y operaciones CRUD.
"""

from cedar.database.supabase_client import (
    get_supabase_client,
    get_supabase_admin_client,
    SupabaseClient,
)
from cedar.database.repositories import (
    PropertyRepository,
    SyncStatusRepository,
)

__all__ = [
    "get_supabase_client",
    "get_supabase_admin_client",
    "SupabaseClient",
    "PropertyRepository",
    "SyncStatusRepository",
]
