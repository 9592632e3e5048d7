import threading
from types import SimpleNamespace

import pytest

from github_stalker.github import EventSummary, IdentityProfile
from github_stalker.store import SubscriptionStore


class FakeGitHub:
    """Scripted stand-in for GitHubClient.

    ``cursors`` maps identity key -> cursor (or an Exception to raise).
    ``existing`` is the set of keys lookup() reports as present.
    """

    def __init__(self):
        self.cursors = {}
        self.existing = set()
        self.avatars = {}
        self.fetch_calls = []
        self._lock = threading.Lock()

    def lookup(self, identity):
        if identity.key not in self.existing:
            return None
        return IdentityProfile(identity, self.avatars.get(identity.key))

    def fetch_latest(self, identity):
        with self._lock:
            self.fetch_calls.append(identity.key)
        value = self.cursors.get(identity.key)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return None, None
        summary = EventSummary("PushEvent", "octocat/Hello-World",
                               "https://github.com/octocat/Hello-World")
        return value, summary


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail_with = None
        self._lock = threading.Lock()

    def send_notification(self, subscriber_id, title, message, link=None):
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.sent.append((subscriber_id, title, message, link))


@pytest.fixture
def config(tmp_path):
    return SimpleNamespace(
        GITHUB_API_URL="https://api.github.com",
        GITHUB_WEB_URL="https://github.com",
        GITHUB_TOKEN=None,
        GITHUB_USER_AGENT="GitHubStalker/test",
        REQUEST_TIMEOUT=5,
        POLLING_INTERVAL=300,
        MAX_WORKERS=2,
        ROUND_TIMEOUT=30,
        STORE_PATH=str(tmp_path / "data" / "db.json"),
        NTFY_URL="https://ntfy.example.com",
        NTFY_TOPIC_PREFIX="gh-",
        NTFY_PRIORITY=3,
        NTFY_TAGS="octopus",
        NTFY_USERNAME=None,
        NTFY_PASSWORD=None,
        TWILIO_ENABLED=False,
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
        TWILIO_FROM_NUMBER=None,
        TWILIO_TO_NUMBER=None,
        API_ENABLED=False,
        API_HOST="127.0.0.1",
        API_PORT=3000,
        API_SECRET="s3cret",
        LOG_DIR=str(tmp_path / "logs"),
        DEBUG=False,
    )


@pytest.fixture
def store(config):
    store = SubscriptionStore(config.STORE_PATH)
    store.load()
    return store


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def notifier():
    return FakeNotifier()
