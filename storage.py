"""
Persistence for the student organizer.

Each user owns one JSON document (see ``ensure_user_schema``). Two backends
store it: a local JSON file holding every user's document, or one Supabase
row per user. ``Store`` owns the in-memory copy and writes through on every
mutation.
"""
import os
import json
import datetime
from typing import Any, Dict, List, Optional

from supabase import create_client

from config import get_logger
from organizer import COLLECTIONS, generate_id

logger = get_logger(__name__)

_ID_PREFIX = {
    "assignments": "asg",
    "schedule": "course",
    "grade_courses": "gcourse",
    "reminders": "rem",
}


class StorageError(Exception):
    pass


def _jsonable(x: Any) -> Any:
    if isinstance(x, (datetime.datetime, datetime.date)):
        return x.isoformat()
    if isinstance(x, dict):
        return {str(k): _jsonable(v) for k, v in x.items()}
    if isinstance(x, list):
        return [_jsonable(v) for v in x]
    return x


def ensure_user_schema(user_data: Optional[Dict[str, Any]], username: str) -> Dict[str, Any]:
    user_data = user_data if isinstance(user_data, dict) else {}

    user_data.setdefault("profile", {})
    user_data["profile"].setdefault("username", username)

    for name in COLLECTIONS:
        if not isinstance(user_data.get(name), list):
            user_data[name] = []
    if not isinstance(user_data.get("notifications"), list):
        user_data["notifications"] = []

    if not isinstance(user_data.get("settings"), dict):
        user_data["settings"] = {}
    user_data["settings"].setdefault("notify_enabled", True)
    user_data["settings"].setdefault("notify_toast", True)
    user_data["settings"].setdefault("notify_banner", True)

    # drop anything that is not a record
    for name in COLLECTIONS:
        user_data[name] = [r for r in user_data[name] if isinstance(r, dict)]

    for a in user_data["assignments"]:
        a.setdefault("id", generate_id("asg"))
        a.setdefault("title", "Untitled assignment")
        a.setdefault("course", "")
        a.setdefault("due_date", None)
        a.setdefault("description", "")
        a.setdefault("priority", "Medium")
        a["completed"] = bool(a.get("completed", False))

    for c in user_data["schedule"]:
        c.setdefault("id", generate_id("course"))
        for key in ("name", "start_time", "end_time", "start_date", "end_date", "days", "location"):
            c.setdefault(key, "")

    for c in user_data["grade_courses"]:
        c.setdefault("id", generate_id("gcourse"))
        c.setdefault("name", "Untitled course")
        if not isinstance(c.get("components"), list):
            c["components"] = []
        for comp in c["components"]:
            comp.setdefault("id", generate_id("comp"))
            comp.setdefault("score", None)

    for r in user_data["reminders"]:
        r.setdefault("id", generate_id("rem"))
        r.setdefault("title", "Untitled reminder")
        r.setdefault("body", "")
        r.setdefault("recurrence", "none")
        r.setdefault("notification_id", None)
        r["completed"] = bool(r.get("completed", False))

    return user_data


# -------------------------------
# Backends
# -------------------------------

class LocalJsonBackend:
    """All users in one JSON file: ``{"users": {username: user_data}}``."""

    def __init__(self, path: str):
        self.path = path

    def _load_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {"users": {}}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s, starting empty: %s", self.path, e)
            return {"users": {}}
        if not isinstance(data, dict):
            return {"users": {}}
        if not isinstance(data.get("users"), dict):
            data["users"] = {}
        return data

    def usernames(self) -> List[str]:
        return sorted(self._load_all()["users"].keys())

    def load_user(self, username: str) -> Dict[str, Any]:
        return self._load_all()["users"].get(username) or {}

    def save_user(self, username: str, user_data: Dict[str, Any]) -> None:
        data = self._load_all()
        data["users"][username] = _jsonable(user_data)
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        except OSError as e:
            logger.error("Error saving %s: %s", self.path, e)
            raise StorageError(f"Error saving data: {e}") from e


class SupabaseBackend:
    """One row per user in ``table`` with columns user_id, data, updated_at."""

    def __init__(self, client, table: str, user_id: str):
        self.client = client
        self.table = table
        self.user_id = user_id

    @classmethod
    def from_config(cls, cfg: Dict[str, str], user_id: str) -> "SupabaseBackend":
        return cls(create_client(cfg["url"], cfg["anon_key"]), cfg.get("table") or "user_data", user_id)

    def load_user(self, username: str) -> Dict[str, Any]:
        try:
            resp = self.client.table(self.table).select("data").eq("user_id", self.user_id).execute()
        except Exception as e:
            logger.warning("Supabase load failed for %s: %s", username, e)
            return {}
        rows = getattr(resp, "data", None)
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0].get("data") or {}
        return {}

    def save_user(self, username: str, user_data: Dict[str, Any]) -> None:
        payload = {
            "user_id": self.user_id,
            "data": _jsonable(user_data),
            "updated_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        try:
            self.client.table(self.table).upsert(payload, on_conflict="user_id").execute()
        except Exception as e:
            logger.error("Supabase save failed for %s: %s", username, e)
            raise StorageError(f"Supabase save failed: {e}") from e


# -------------------------------
# Store
# -------------------------------

class Store:
    def __init__(self, backend, username: str):
        self.backend = backend
        self.username = username
        self.data: Dict[str, Any] = ensure_user_schema({}, username)

    def load(self) -> Dict[str, Any]:
        self.data = ensure_user_schema(self.backend.load_user(self.username), self.username)
        return self.data

    def save(self) -> None:
        self.backend.save_user(self.username, self.data)

    def _records(self, collection: str) -> List[Dict[str, Any]]:
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection: {collection}")
        return self.data.setdefault(collection, [])

    def list(self, collection: str) -> List[Dict[str, Any]]:
        return list(self._records(collection))

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        return next((r for r in self._records(collection) if r.get("id") == record_id), None)

    def upsert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        records = self._records(collection)
        record = dict(record)
        if not record.get("id"):
            record["id"] = generate_id(_ID_PREFIX.get(collection, "rec"))

        for i, r in enumerate(records):
            if r.get("id") == record["id"]:
                records[i] = record
                break
        else:
            records.append(record)

        self.save()
        return record

    def remove(self, collection: str, record_id: str) -> bool:
        records = self._records(collection)
        kept = [r for r in records if r.get("id") != record_id]
        if len(kept) == len(records):
            return False
        self.data[collection] = kept
        self.save()
        return True
