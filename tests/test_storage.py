import json

import pytest

from storage import (
    LocalJsonBackend,
    Store,
    StorageError,
    SupabaseBackend,
    ensure_user_schema,
)


@pytest.fixture
def store(tmp_path):
    s = Store(LocalJsonBackend(str(tmp_path / "data.json")), "ada")
    s.load()
    return s


def test_ensure_user_schema_fills_defaults():
    data = ensure_user_schema({
        "assignments": [{"title": "Essay"}, "junk"],
        "grade_courses": [{"name": "Physics", "components": [{"name": "Final", "weight": 50}]}],
        "reminders": None,
    }, "ada")

    assert data["profile"]["username"] == "ada"
    assert data["schedule"] == [] and data["reminders"] == [] and data["notifications"] == []
    assert len(data["assignments"]) == 1
    a = data["assignments"][0]
    assert a["id"].startswith("asg_")
    assert a["priority"] == "Medium"
    assert a["completed"] is False
    comp = data["grade_courses"][0]["components"][0]
    assert comp["id"].startswith("comp_")
    assert comp["score"] is None
    assert data["settings"]["notify_enabled"] is True


def test_upsert_assigns_id_and_persists(store, tmp_path):
    saved = store.upsert("assignments", {"title": "Essay", "course": "Writing"})
    assert saved["id"].startswith("asg_")

    again = Store(LocalJsonBackend(str(tmp_path / "data.json")), "ada")
    again.load()
    [loaded] = again.list("assignments")
    assert loaded["id"] == saved["id"]
    assert loaded["title"] == "Essay"
    assert loaded["priority"] == "Medium"


def test_upsert_replaces_by_id_in_place(store):
    first = store.upsert("schedule", {"name": "Algebra"})
    second = store.upsert("schedule", {"name": "Biology"})
    store.upsert("schedule", {**first, "name": "Linear Algebra"})

    assert [c["name"] for c in store.list("schedule")] == ["Linear Algebra", "Biology"]
    assert store.get("schedule", second["id"])["name"] == "Biology"


def test_remove(store):
    course = store.upsert("grade_courses", {"name": "Physics", "components": [{"id": "c1", "name": "Final"}]})
    assert store.remove("grade_courses", course["id"])
    assert not store.remove("grade_courses", course["id"])
    assert store.list("grade_courses") == []


def test_list_returns_a_copy(store):
    store.upsert("reminders", {"title": "Call advisor"})
    store.list("reminders").clear()
    assert len(store.list("reminders")) == 1


def test_unknown_collection(store):
    with pytest.raises(KeyError):
        store.list("grades")


def test_users_are_kept_apart(tmp_path):
    backend = LocalJsonBackend(str(tmp_path / "data.json"))
    ada = Store(backend, "ada")
    ada.load()
    ada.upsert("assignments", {"title": "Essay"})
    bob = Store(backend, "bob")
    bob.load()
    bob.save()

    assert backend.usernames() == ["ada", "bob"]
    assert bob.list("assignments") == []


def test_corrupt_file_loads_empty(tmp_path):
    path = tmp_path / "data.json"
    path.write_text("{not json", encoding="utf-8")
    store = Store(LocalJsonBackend(str(path)), "ada")
    data = store.load()
    assert data["assignments"] == []
    assert data["profile"]["username"] == "ada"


def test_save_failure_raises_storage_error(tmp_path):
    store = Store(LocalJsonBackend(str(tmp_path / "missing" / "data.json")), "ada")
    store.load()
    with pytest.raises(StorageError):
        store.upsert("assignments", {"title": "Essay"})


def test_saved_file_layout(store, tmp_path):
    store.upsert("reminders", {"title": "Library", "date": "2024-10-01T12:00:00"})
    raw = json.loads((tmp_path / "data.json").read_text(encoding="utf-8"))
    assert list(raw["users"]) == ["ada"]
    assert raw["users"]["ada"]["reminders"][0]["title"] == "Library"


# -------------------------------
# Supabase backend (client double)
# -------------------------------

class _Resp:
    def __init__(self, data):
        self.data = data


class _Query:
    def __init__(self, client):
        self.client = client

    def select(self, cols):
        self.client.calls.append(("select", cols))
        return self

    def eq(self, col, value):
        self.client.calls.append(("eq", col, value))
        return self

    def upsert(self, payload, on_conflict=None):
        self.client.calls.append(("upsert", payload, on_conflict))
        return self

    def execute(self):
        if self.client.fail:
            raise RuntimeError("network down")
        return _Resp(self.client.rows)


class _Client:
    def __init__(self, rows=None, fail=False):
        self.rows = rows or []
        self.fail = fail
        self.calls = []

    def table(self, name):
        self.calls.append(("table", name))
        return _Query(self)


def test_supabase_load_and_save():
    client = _Client(rows=[{"data": {"assignments": [{"id": "asg_1", "title": "Essay"}]}}])
    store = Store(SupabaseBackend(client, "user_data", "uuid-1"), "ada@example.com")
    store.load()
    assert store.get("assignments", "asg_1")["title"] == "Essay"
    assert ("eq", "user_id", "uuid-1") in client.calls

    store.upsert("assignments", {"title": "Quiz"})
    op, payload, on_conflict = client.calls[-1]
    assert op == "upsert" and on_conflict == "user_id"
    assert payload["user_id"] == "uuid-1"
    assert len(payload["data"]["assignments"]) == 2


def test_supabase_failures():
    client = _Client(fail=True)
    store = Store(SupabaseBackend(client, "user_data", "uuid-1"), "ada@example.com")
    assert store.load()["assignments"] == []
    with pytest.raises(StorageError):
        store.save()
