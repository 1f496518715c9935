# rental_admin/db/database.py

import logging
from typing import Any, Optional

from supabase import create_client, Client
import streamlit as st

from rental_admin.config import AppConfig, load_config
from rental_admin.errors import PersistenceError

logger = logging.getLogger(__name__)


def get_supabase_client(cfg: Optional[AppConfig] = None) -> Client:
    """
    Returns a Supabase client cached per browser session.
    Each session gets its own client because the auth session
    (and therefore row level security) is bound to it.
    """

    if "supabase_client" not in st.session_state:
        cfg = cfg or load_config()
        st.session_state.supabase_client = create_client(cfg.supabase.url, cfg.supabase.key)

    return st.session_state.supabase_client


def error_message(exc: Exception) -> str:
    message = getattr(exc, "message", None) or getattr(exc, "details", None)
    return str(message or exc)


def execute(query: Any, action: str) -> list:
    """Run a PostgREST query and return its rows.

    Any failure from the client is logged and re-raised as PersistenceError.
    """
    try:
        response = query.execute()
    except Exception as e:
        message = error_message(e)
        logger.error("Failed to %s: %s", action, message)
        raise PersistenceError(f"Failed to {action}: {message}") from e

    data = response.data if response is not None else None
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)
