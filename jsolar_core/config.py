# =============================================================================
# jsolar_core/config.py
# Runtime Settings for JSolar Field Service
# =============================================================================
"""
Settings are read from Streamlit secrets when available:

    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"

    [offline]
    db_path = "local_data/jsolar_offline.db"
    check_interval_online = 30
    check_interval_offline = 10
    connection_timeout = 5

Any value missing there falls back to environment variables
(SUPABASE_URL, SUPABASE_KEY, JSOLAR_LOCAL_DB, JSOLAR_CHECK_INTERVAL_ONLINE,
JSOLAR_CHECK_INTERVAL_OFFLINE, JSOLAR_CONNECTION_TIMEOUT) and then to defaults.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import streamlit as st

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("local_data") / "jsolar_offline.db"


@dataclass
class Settings:
    """Resolved runtime settings."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    local_db_path: Path = DEFAULT_DB_PATH
    check_interval_online: int = 30
    check_interval_offline: int = 10
    connection_timeout: int = 5

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _read_secrets_section(name: str) -> Dict[str, Any]:
    """Return one secrets.toml table as a dict, or {} if unavailable."""
    try:
        if name in st.secrets:
            return dict(st.secrets[name])
    except Exception as e:
        # st.secrets raises when no secrets.toml exists at all
        logger.debug(f"Streamlit secrets not available: {e}")
    return {}


def load_settings() -> Settings:
    """
    Build Settings from Streamlit secrets, then environment, then defaults.

    Returns:
        Settings instance
    """
    supabase = _read_secrets_section("supabase")
    offline = _read_secrets_section("offline")

    db_path = offline.get("db_path") or os.getenv("JSOLAR_LOCAL_DB")

    settings = Settings(
        supabase_url=supabase.get("url") or os.getenv("SUPABASE_URL"),
        supabase_key=supabase.get("key") or os.getenv("SUPABASE_KEY"),
        local_db_path=Path(db_path) if db_path else DEFAULT_DB_PATH,
        check_interval_online=int(
            offline.get("check_interval_online")
            or os.getenv("JSOLAR_CHECK_INTERVAL_ONLINE", 30)
        ),
        check_interval_offline=int(
            offline.get("check_interval_offline")
            or os.getenv("JSOLAR_CHECK_INTERVAL_OFFLINE", 10)
        ),
        connection_timeout=int(
            offline.get("connection_timeout")
            or os.getenv("JSOLAR_CONNECTION_TIMEOUT", 5)
        ),
    )

    if not settings.has_supabase:
        logger.warning("Supabase credentials not configured; running cache-only")

    return settings
