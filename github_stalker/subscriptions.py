"""Subscribe, unsubscribe and list tracked identities."""
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import AlreadyTracking, IdentityNotFound, NotTracking
from .identity import parse_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscribeAck:
    identity: object
    avatar_url: Optional[str] = None
    baseline_cursor: Optional[str] = None


@dataclass(frozen=True)
class UnsubscribeAck:
    identity: object


class SubscriptionManager:
    """Validates subscription requests before they touch the store."""

    def __init__(self, store, github):
        """``github`` provides ``lookup(identity)`` and ``fetch_latest(identity)``."""
        self.store = store
        self.github = github

    @staticmethod
    def _coerce(identity, kind):
        if isinstance(identity, str):
            return parse_identity(kind, identity)
        return identity

    def subscribe(self, subscriber_id, identity, kind=None):
        """Start tracking ``identity`` for ``subscriber_id``.

        The tracking is created with the identity's current latest event as
        its baseline, so the next round only reports activity newer than the
        subscription.
        """
        identity = self._coerce(identity, kind)

        if self.store.is_tracking(subscriber_id, identity):
            raise AlreadyTracking(f"You are already stalking {identity}.")

        profile = self.github.lookup(identity)
        if profile is None:
            raise IdentityNotFound(f"That GitHub {identity.kind} does not exist: {identity}")

        baseline, _ = self.github.fetch_latest(identity)
        if baseline is None:
            logger.info("No baseline event for %s, first round will record one", identity)

        with self.store.transaction():
            # Checked again under the lock: another request may have won the race
            if self.store.is_tracking(subscriber_id, identity):
                raise AlreadyTracking(f"You are already stalking {identity}.")
            self.store.add_tracking(subscriber_id, identity, baseline)

        return SubscribeAck(identity, profile.avatar_url, baseline)

    def unsubscribe(self, subscriber_id, identity, kind=None):
        """Stop tracking ``identity`` for ``subscriber_id``."""
        identity = self._coerce(identity, kind)
        if not self.store.remove_tracking(subscriber_id, identity):
            raise NotTracking(f"You are not stalking {identity}.")
        return UnsubscribeAck(identity)

    def list_tracked(self, subscriber_id):
        """Return (users, repos) tracked by ``subscriber_id``, in subscription order."""
        return self.store.list_tracked(subscriber_id)
