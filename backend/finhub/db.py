"""
Database client configuration.
Uses Supabase (PostgreSQL via PostgREST) as the backing store.

The client is built by the process entry point and handed to the repository;
pipeline code never reaches for a module-level handle.
"""

import os
from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()


def create_supabase_client() -> Client:
    """
    Build a service-level Supabase client from the environment.

    SUPABASE_SERVICE_KEY is preferred because the ingestion webhook writes on
    behalf of every owner; SUPABASE_KEY is accepted for local development.
    """
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")

    if not url or not key:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables"
        )

    return create_client(url, key)
