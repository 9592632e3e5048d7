import json
import os

import pytest

from github_stalker.errors import StorageError
from github_stalker.identity import Repo, User
from github_stalker.store import SubscriptionStore


def _read(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def test_load_bootstraps_missing_document(config):
    store = SubscriptionStore(config.STORE_PATH)
    store.load()

    assert os.path.exists(config.STORE_PATH)
    assert _read(config.STORE_PATH) == {"subscribers": {}}
    assert store.snapshot() == []


def test_add_tracking_persists_whole_document(store, config):
    store.add_tracking("alice", User("octocat"), "E1")
    store.add_tracking("alice", Repo("octocat", "Hello-World"), None)

    assert _read(config.STORE_PATH) == {
        "subscribers": {
            "alice": {"users": {"octocat": "E1"}, "repos": {"octocat/Hello-World": None}},
        }
    }


def test_reload_recovers_last_document(store, config):
    store.add_tracking("alice", User("octocat"), "E1")

    reloaded = SubscriptionStore(config.STORE_PATH)
    reloaded.load()

    assert reloaded.get_cursor("alice", User("octocat")) == "E1"
    assert reloaded.is_tracking("alice", User("octocat"))


def test_tracking_without_cursor_still_exists(store):
    store.add_tracking("alice", User("octocat"), None)

    assert store.is_tracking("alice", User("octocat"))
    assert store.get_cursor("alice", User("octocat")) is None


def test_list_tracked_keeps_insertion_order(store):
    for name in ("zed", "amy", "mike"):
        store.add_tracking("alice", User(name), None)
    store.add_tracking("alice", Repo("b", "two"), None)
    store.add_tracking("alice", Repo("a", "one"), None)

    users, repos = store.list_tracked("alice")

    assert [u.key for u in users] == ["zed", "amy", "mike"]
    assert [r.key for r in repos] == ["b/two", "a/one"]
    assert store.list_tracked("nobody") == ([], [])


def test_remove_tracking_prunes_empty_subscriber(store, config):
    store.add_tracking("alice", User("octocat"), "E1")

    assert store.remove_tracking("alice", User("octocat")) is True
    assert store.remove_tracking("alice", User("octocat")) is False
    assert _read(config.STORE_PATH) == {"subscribers": {}}


def test_update_cursor_does_not_resurrect_removed_tracking(store):
    store.add_tracking("alice", User("octocat"), "E1")
    store.remove_tracking("alice", User("octocat"))

    assert store.update_cursor("alice", User("octocat"), "E2") is False
    assert not store.is_tracking("alice", User("octocat"))


def test_update_cursor_refuses_to_clear(store):
    store.add_tracking("alice", User("octocat"), "E1")

    with pytest.raises(ValueError):
        store.update_cursor("alice", User("octocat"), None)
    assert store.get_cursor("alice", User("octocat")) == "E1"


def test_snapshot_lists_every_tracking(store):
    store.add_tracking("alice", User("octocat"), "E1")
    store.add_tracking("bob", Repo("o", "r"), None)

    assert store.snapshot() == [
        ("alice", User("octocat"), "E1"),
        ("bob", Repo("o", "r"), None),
    ]


def test_failed_persist_rolls_back_memory(store, config, monkeypatch):
    store.add_tracking("alice", User("octocat"), "E1")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(StorageError):
        store.update_cursor("alice", User("octocat"), "E2")
    with pytest.raises(StorageError):
        store.add_tracking("bob", User("hubot"), None)

    assert store.get_cursor("alice", User("octocat")) == "E1"
    assert not store.is_tracking("bob", User("hubot"))
    assert _read(config.STORE_PATH)["subscribers"]["alice"]["users"] == {"octocat": "E1"}


@pytest.mark.parametrize("content", [
    "{not json",
    "[]",
    '{"subscribers": []}',
    '{"subscribers": {"alice": {"users": {"octocat": 5}}}}',
    '{"subscribers": {"alice": {"repos": {"no-slash": null}}}}',
    '{"subscribers": {"alice": {"users": {"OctoCat": null}}}}',
])
def test_corrupt_document_is_fatal(config, content):
    os.makedirs(os.path.dirname(config.STORE_PATH))
    with open(config.STORE_PATH, "w", encoding="utf-8") as f:
        f.write(content)

    store = SubscriptionStore(config.STORE_PATH)
    with pytest.raises(StorageError):
        store.load()
    # Left alone for the operator
    with open(config.STORE_PATH, encoding="utf-8") as f:
        assert f.read() == content


def test_use_before_load_is_an_error(config):
    store = SubscriptionStore(config.STORE_PATH)
    with pytest.raises(StorageError):
        store.snapshot()


def test_update_cursor_only_replaces_expected_value(store):
    store.add_tracking("alice", User("octocat"), None)

    assert store.update_cursor("alice", User("octocat"), "E2", expected="E1") is False
    assert store.get_cursor("alice", User("octocat")) is None

    assert store.update_cursor("alice", User("octocat"), "E2", expected=None) is True
    assert store.update_cursor("alice", User("octocat"), "E3", expected="E2") is True
    assert store.get_cursor("alice", User("octocat")) == "E3"


def test_failed_write_leaves_no_temp_file(store, config, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(StorageError):
        store.add_tracking("alice", User("octocat"), "E1")

    assert not os.path.exists(config.STORE_PATH + ".tmp")
