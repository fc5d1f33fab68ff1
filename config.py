"""Settings and logging for the student organizer."""
import os
import sys
import logging
from typing import Dict

import streamlit as st

APP_NAME = "student-organizer"
DEFAULT_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DATA_FILE = os.getenv("STUDENT_ORGANIZER_DATA_FILE", "student_organizer_data.json")


def setup_logging(level: str = DEFAULT_LOG_LEVEL) -> logging.Logger:
    lvl = getattr(logging, str(level).upper(), logging.INFO)

    logger = logging.getLogger(APP_NAME)
    logger.setLevel(lvl)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(lvl)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    return logger


def get_logger(name: str) -> logging.Logger:
    # children of APP_NAME share its handlers
    return logging.getLogger(f"{APP_NAME}.{name}")


def supabase_cfg() -> Dict[str, str]:
    """
    Supports BOTH secrets formats:

    A) Nested:
      [supabase]
      url = "..."
      anon_key = "..."
      table = "user_data"

    B) Flat:
      SUPABASE_URL = "..."
      SUPABASE_ANON_KEY = "..."
      SUPABASE_TABLE = "user_data"
    """
    try:
        s = st.secrets.get("supabase", {})
        if hasattr(s, "get") and (s.get("url") or s.get("anon_key") or s.get("table")):
            return {
                "url": str(s.get("url", "")).strip(),
                "anon_key": str(s.get("anon_key", "")).strip(),
                "table": str(s.get("table", "user_data")).strip() or "user_data",
            }

        return {
            "url": str(st.secrets.get("SUPABASE_URL", "")).strip(),
            "anon_key": str(st.secrets.get("SUPABASE_ANON_KEY", "")).strip(),
            "table": str(st.secrets.get("SUPABASE_TABLE", "user_data")).strip() or "user_data",
        }
    except Exception:
        # no secrets.toml at all
        return {"url": "", "anon_key": "", "table": "user_data"}


def supabase_enabled() -> bool:
    cfg = supabase_cfg()
    return bool(cfg["url"]) and bool(cfg["anon_key"])
