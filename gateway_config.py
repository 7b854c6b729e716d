"""
Gateway configuration, read from the environment (and an optional .env file)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

# -----------------------------
# DEFAULTS
# -----------------------------

DEFAULT_STORE_BACKEND = "file"
DEFAULT_STORE_DIR = "event_store"
DEFAULT_SUPABASE_TABLE = "webhook_subscribers"
DEFAULT_URL_SCHEME = "https"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

STORE_BACKENDS = ("file", "supabase")


@dataclass(frozen=True)
class GatewayConfig:
    verify_token: str
    registration_secret: str
    store_backend: str = DEFAULT_STORE_BACKEND
    store_dir: str = DEFAULT_STORE_DIR
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_table: str = DEFAULT_SUPABASE_TABLE
    url_scheme: str = DEFAULT_URL_SCHEME
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def load_config(env: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    if env is None:
        load_dotenv()
        env = os.environ

    verify_token = env.get("VERIFY_TOKEN")
    registration_secret = env.get("REGISTRATION_SECRET")
    store_backend = env.get("STORE_BACKEND", DEFAULT_STORE_BACKEND).lower()

    missing = []
    if not verify_token:
        missing.append("VERIFY_TOKEN")
    if not registration_secret:
        missing.append("REGISTRATION_SECRET")

    if store_backend not in STORE_BACKENDS:
        raise RuntimeError(f"Unknown STORE_BACKEND: {store_backend}")

    supabase_url = env.get("SUPABASE_URL")
    supabase_key = env.get("SUPABASE_SERVICE_ROLE_KEY")

    if store_backend == "supabase":
        if not supabase_url:
            missing.append("SUPABASE_URL")
        if not supabase_key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")

    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    try:
        port = int(env.get("PORT", DEFAULT_PORT))
    except ValueError:
        raise RuntimeError(f"PORT must be an integer, got {env.get('PORT')!r}")

    return GatewayConfig(
        verify_token=str(verify_token),
        registration_secret=str(registration_secret),
        store_backend=store_backend,
        store_dir=env.get("EVENT_STORE_DIR", DEFAULT_STORE_DIR),
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        supabase_table=env.get("SUPABASE_TABLE", DEFAULT_SUPABASE_TABLE),
        url_scheme=env.get("PUBLIC_URL_SCHEME", DEFAULT_URL_SCHEME),
        host=env.get("HOST", DEFAULT_HOST),
        port=port,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
