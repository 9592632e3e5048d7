"""Subscription store: who tracks what, and the last cursor each has seen."""
import copy
import json
import logging
import os
import threading
from contextlib import contextmanager

from .errors import InvalidIdentityFormat, StorageError
from .identity import REPO, USER, identity_from_key

logger = logging.getLogger(__name__)

SECTIONS = {USER: "users", REPO: "repos"}

# update_cursor() default: write whatever the stored cursor is
_ANY = object()


def _empty_document():
    return {"subscribers": {}}


class SubscriptionStore:
    """Manages the persistent mapping subscriber -> identity -> last-seen cursor.

    The whole mapping lives in one JSON document which is rewritten on every
    mutation. An in-memory copy serves reads; every read-modify-persist block
    runs under ``self.lock``.
    """

    def __init__(self, path):
        """Initialize the store with the path to the JSON document."""
        self.path = path
        self.lock = threading.RLock()
        self._data = None

    def _ensure_store_directory(self):
        """Ensure the directory for the store file exists."""
        store_dir = os.path.dirname(self.path)
        if store_dir and not os.path.exists(store_dir):
            os.makedirs(store_dir)
            logger.info("Created directory for subscription store: %s", store_dir)

    def load(self):
        """Load the document from disk, creating an empty one if it is missing.

        A document that exists but cannot be parsed is not repaired: the
        operator has to look at it, so this raises StorageError.
        """
        with self.lock:
            try:
                self._ensure_store_directory()
            except OSError as e:
                raise StorageError(f"Cannot create store directory: {e}") from e

            if not os.path.exists(self.path):
                self._data = _empty_document()
                self._persist()
                logger.info("Initialized empty subscription store at %s", self.path)
                return

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                logger.error("Error reading subscription store %s: %s", self.path, e)
                raise StorageError(f"Cannot read subscription store {self.path}: {e}") from e

            self._validate(data)
            self._data = data
            logger.info("Loaded subscription store from %s (%d subscribers)",
                        self.path, len(data["subscribers"]))

    def _validate(self, data):
        """Check the document shape; anything unexpected is a fatal error."""
        if not isinstance(data, dict) or not isinstance(data.get("subscribers"), dict):
            raise StorageError(f"Malformed subscription store {self.path}: missing 'subscribers'")
        for subscriber_id, record in data["subscribers"].items():
            if not isinstance(record, dict):
                raise StorageError(
                    f"Malformed subscription store {self.path}: bad record for {subscriber_id}")
            for kind, section in SECTIONS.items():
                trackings = record.setdefault(section, {})
                if not isinstance(trackings, dict):
                    raise StorageError(
                        f"Malformed subscription store {self.path}: bad {section} for {subscriber_id}")
                for key, cursor in trackings.items():
                    try:
                        normalized = identity_from_key(kind, key).key
                    except InvalidIdentityFormat as e:
                        raise StorageError(
                            f"Malformed subscription store {self.path}: bad key {key!r}") from e
                    if normalized != key:
                        raise StorageError(
                            f"Malformed subscription store {self.path}: key {key!r} is not normalized")
                    if cursor is not None and not isinstance(cursor, str):
                        raise StorageError(
                            f"Malformed subscription store {self.path}: bad cursor for {key}")

    def _persist(self):
        """Write the whole document atomically (temp file + rename)."""
        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error writing subscription store %s: %s", self.path, e)
            try:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
            except OSError as cleanup_error:
                logger.warning("Could not remove %s: %s", tmp_path, cleanup_error)
            raise StorageError(f"Cannot write subscription store {self.path}: {e}") from e

    def _require_loaded(self):
        if self._data is None:
            raise StorageError("Subscription store used before load()")

    @contextmanager
    def transaction(self):
        """Hold the store lock for a check-then-act sequence.

        On StorageError the in-memory document is restored to its state at
        the start of the block.
        """
        with self.lock:
            self._require_loaded()
            backup = copy.deepcopy(self._data)
            try:
                yield self
            except StorageError:
                self._data = backup
                raise

    def _trackings(self, subscriber_id, kind, create=False):
        subscribers = self._data["subscribers"]
        record = subscribers.get(subscriber_id)
        if record is None:
            if not create:
                return None
            record = subscribers[subscriber_id] = {"users": {}, "repos": {}}
        return record[SECTIONS[kind]]

    def is_tracking(self, subscriber_id, identity):
        """Return True if the subscriber currently tracks the identity."""
        with self.lock:
            self._require_loaded()
            trackings = self._trackings(subscriber_id, identity.kind)
            return trackings is not None and identity.key in trackings

    def get_cursor(self, subscriber_id, identity):
        """Return the last-seen cursor (None when absent or not tracked)."""
        with self.lock:
            self._require_loaded()
            trackings = self._trackings(subscriber_id, identity.kind)
            if trackings is None:
                return None
            return trackings.get(identity.key)

    def add_tracking(self, subscriber_id, identity, cursor):
        """Create a tracking with the given baseline cursor and persist."""
        with self.transaction():
            trackings = self._trackings(subscriber_id, identity.kind, create=True)
            trackings[identity.key] = cursor
            self._persist()
            logger.info("Subscriber %s now tracks %s %s (baseline %s)",
                        subscriber_id, identity.kind, identity.key, cursor)

    def remove_tracking(self, subscriber_id, identity):
        """Delete a tracking and persist. Returns False if it did not exist."""
        with self.transaction():
            trackings = self._trackings(subscriber_id, identity.kind)
            if trackings is None or identity.key not in trackings:
                return False
            del trackings[identity.key]
            record = self._data["subscribers"][subscriber_id]
            if not any(record[section] for section in SECTIONS.values()):
                del self._data["subscribers"][subscriber_id]
            self._persist()
            logger.info("Subscriber %s stopped tracking %s %s",
                        subscriber_id, identity.kind, identity.key)
            return True

    def update_cursor(self, subscriber_id, identity, cursor, expected=_ANY):
        """Replace the last-seen cursor and persist.

        Returns False without writing if the tracking no longer exists, or if
        ``expected`` is given and the stored cursor (possibly None) differs
        from it. A round finishing after an unsubscribe, a resubscribe or a
        newer write therefore leaves the stored cursor alone.
        """
        if cursor is None:
            raise ValueError("A tracked cursor can only be replaced, not cleared")
        with self.transaction():
            trackings = self._trackings(subscriber_id, identity.kind)
            if trackings is None or identity.key not in trackings:
                logger.info("Tracking %s for %s vanished, cursor %s not stored",
                            identity.key, subscriber_id, cursor)
                return False
            if expected is not _ANY and trackings[identity.key] != expected:
                logger.info("Cursor of %s for %s moved from %s to %s meanwhile, %s not stored",
                            identity.key, subscriber_id, expected,
                            trackings[identity.key], cursor)
                return False
            trackings[identity.key] = cursor
            self._persist()
            logger.debug("Stored cursor %s for %s (subscriber %s)",
                         cursor, identity.key, subscriber_id)
            return True

    def list_tracked(self, subscriber_id):
        """Return (users, repos) tracked by the subscriber, in insertion order."""
        with self.lock:
            self._require_loaded()
            record = self._data["subscribers"].get(subscriber_id)
            if record is None:
                return [], []
            users = [identity_from_key(USER, key) for key in record["users"]]
            repos = [identity_from_key(REPO, key) for key in record["repos"]]
            return users, repos

    def snapshot(self):
        """Return a list of (subscriber_id, identity, cursor) for every tracking."""
        with self.lock:
            self._require_loaded()
            triples = []
            for subscriber_id, record in self._data["subscribers"].items():
                for kind, section in SECTIONS.items():
                    for key, cursor in record[section].items():
                        triples.append((subscriber_id, identity_from_key(kind, key), cursor))
            return triples
