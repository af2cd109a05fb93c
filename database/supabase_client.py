from typing import Final, Optional

from supabase import create_client, Client

from config.settings import SUPABASE_URL, SUPABASE_KEY

_SUPABASE_URL_ENV: Final[str] = "SUPABASE_URL"
_SUPABASE_KEY_ENV: Final[str] = "SUPABASE_SERVICE_KEY"

_supabase_client: Optional[Client] = None


def _require(value: Optional[str], var_name: str) -> str:
    """Return a configured value or raise a clear error if missing."""
    if not value:
        raise RuntimeError(
            f"Missing required environment variable '{var_name}'. "
            "Please set it before starting the application."
        )
    return value


def get_supabase() -> Client:
    """
    Return the shared Supabase client, creating it on first use.

    Created lazily so that importing services (e.g. in tests that inject a
    fake client) never requires credentials.
    """
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = create_client(
            _require(SUPABASE_URL, _SUPABASE_URL_ENV),
            _require(SUPABASE_KEY, _SUPABASE_KEY_ENV),
        )
    return _supabase_client
