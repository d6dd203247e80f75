from supabase import create_client, Client
from dotenv import load_dotenv
import os

load_dotenv()

_client: Client | None = None


def get_supabase_client() -> Client:
    """Get the process-wide Supabase client, creating it on first use."""
    global _client
    if _client is not None:
        return _client

    url: str | None = os.getenv("SUPABASE_URL")
    key: str | None = os.getenv("SUPABASE_SERVICE_KEY")

    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

    _client = create_client(url, key)
    return _client


def reset_supabase_client() -> None:
    """Drop the cached client (used when switching environments and in tests)."""
    global _client
    _client = None
