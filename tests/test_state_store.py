import pytest

from p4scm_core.models import Changelist, P4File, format_revision
from p4scm_core.state_store import RepositoryStateStore


def _file(depot: str, workspace: str = "") -> P4File:
    return P4File(depot_path=depot, workspace_path=workspace)


def test_changelists_sorted_numeric_descending_default_last() -> None:
    store = RepositoryStateStore()
    store.ensure_default_changelist()
    for cid in ["9", "120", "33"]:
        store.add_changelist(Changelist(id=cid))
    assert [c.id for c in store.changelists()] == ["120", "33", "9", "default"]


def test_ensure_default_is_idempotent_and_clears_files() -> None:
    store = RepositoryStateStore()
    default = store.ensure_default_changelist("alice", None)
    default.files.append(_file("//d/a"))
    again = store.ensure_default_changelist("bob", "ws")
    assert again is default
    assert again.files == []
    assert (again.user, again.client) == ("alice", "unknown")


def test_default_cannot_be_removed() -> None:
    store = RepositoryStateStore()
    store.ensure_default_changelist()
    with pytest.raises(ValueError):
        store.remove_changelist("default")
    assert store.remove_changelist("404") is None


def test_upsert_keeps_identity() -> None:
    store = RepositoryStateStore()
    first = store.upsert_changelist(Changelist(id="5", description="one"))
    first.files.append(_file("//d/a"))
    second = store.upsert_changelist(Changelist(id="5", description="two", is_restricted=True))
    assert second is first
    assert first.description == "two"
    assert first.is_restricted
    assert first.files == []


def test_reset_drops_files_and_changelist_membership() -> None:
    store = RepositoryStateStore()
    change = store.upsert_changelist(Changelist(id="5"))
    f = _file("//d/a")
    store.insert_file("//d/a", f)
    store.attach_files(change, [f, f])
    assert change.files == [f]

    store.reset()

    assert store.file_count == 0
    assert store.get_changelist("5") is change
    assert change.files == []


def test_migrate_keys_moves_each_file_once() -> None:
    store = RepositoryStateStore()
    a, b, c, d = _file("//d/a"), _file("//d/b"), _file("//d/c"), _file("//d/d")
    for f in (a, b, c, d):
        store.insert_file(f.placeholder_key, f)

    dropped = store.migrate_keys({"//d/a": "/w/a", "//d/b": "/w/a", "//d/c": None})

    assert dropped == ["//d/b", "//d/c", "//d/d"]
    assert store.file_keys() == ["/w/a"]
    assert store.get_file("/w/a") is a
    assert store.lookup_file("//d/a") is None


def test_placeholder_key_prefers_depot_path() -> None:
    assert _file("//d/a", "//ws/a").placeholder_key == "//d/a"
    assert _file("", "//ws/a").placeholder_key == "//ws/a"
    f = _file("//d/a", "//ws/a")
    f.resolved_local_path = "/w/a"
    assert f.key == "/w/a"


@pytest.mark.parametrize(
    "raw,expected",
    [("3", "#3"), (3, "#3"), ("none", "#none"), ("#4", "#4"), ("", None), (None, None)],
)
def test_format_revision(raw, expected) -> None:
    assert format_revision(raw) == expected


def test_empty_changelist_id_is_default() -> None:
    assert P4File(depot_path="//d/a", changelist_id="").changelist_id == "default"
