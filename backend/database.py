"""
Supabase client factories.

`get_supabase` returns the shared service-role client used for table and
storage access. `get_auth_client` returns a fresh anon-key client per request
so that sign-in calls never attach a user session to the shared client.
"""

from functools import lru_cache

from supabase import Client, create_client

from config import get_settings


@lru_cache()
def get_supabase() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def get_auth_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_anon_key)
