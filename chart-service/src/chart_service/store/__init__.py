"""
Storage module for the chart service.

This module exports:
- SupabaseRestClient: PostgREST client for the Supabase tables
- StoreError: Raised when a storage request fails
"""

from chart_service.store.client import StoreError, SupabaseRestClient

__all__ = [
    "StoreError",
    "SupabaseRestClient",
]
