"""Client initialization utilities.

Provides functions for initializing external service clients
(Supabase, OpenAI-compatible model endpoints) used by the ingestion engine.
"""

from functools import lru_cache

from openai import AsyncOpenAI
from supabase import Client, create_client


@lru_cache(maxsize=64)
def get_llm_client(base_url: str, api_key: str) -> AsyncOpenAI:
    """Return a cached OpenAI-compatible client for one credential.

    The resilient model caller rotates through a pool of credentials, so a
    client is kept per (base URL, key) pair instead of one global client.

    Args:
        base_url: OpenAI-compatible API base URL.
        api_key: Credential from the configured pool.

    Returns:
        AsyncOpenAI client bound to the credential.
    """
    return AsyncOpenAI(base_url=base_url, api_key=api_key, max_retries=0)


def get_supabase_client(url: str, key: str) -> Client:
    """Create a Supabase client.

    Args:
        url: Supabase project URL.
        key: Supabase service role key.

    Returns:
        Configured Supabase client.

    Raises:
        ValueError: If the URL or key is missing.
    """
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables are required")

    return create_client(url, key)
