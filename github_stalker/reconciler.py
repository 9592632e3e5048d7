"""Decides, for one tracked identity, whether there is something to tell."""
import enum
import logging
import traceback
from dataclasses import dataclass
from typing import Optional

from .github import EventSummary
from .identity import USER

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    UNCHANGED = "unchanged"
    FIRST_OBSERVATION = "first_observation"
    NEW_ACTIVITY = "new_activity"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class ReconcileOutcome:
    kind: Outcome
    cursor: Optional[str] = None
    summary: Optional[EventSummary] = None

    @property
    def needs_store(self):
        """True when the caller has to persist ``cursor``."""
        return self.kind in (Outcome.FIRST_OBSERVATION, Outcome.NEW_ACTIVITY)


@dataclass(frozen=True)
class Notification:
    title: str
    message: str
    link: Optional[str] = None


class Reconciler:
    """Compares the last-seen cursor of a tracking with the live feed."""

    def __init__(self, fetcher):
        """``fetcher`` provides ``fetch_latest(identity) -> (cursor, summary)``."""
        self.fetcher = fetcher

    def reconcile(self, subscriber_id, identity, cursor):
        """Fetch the newest event for ``identity`` and classify it against ``cursor``.

        Cursors are compared for equality only. A tracking that has never
        recorded a cursor gets FIRST_OBSERVATION whatever the feed says, so a
        new subscriber is never notified about old activity.
        """
        try:
            new_cursor, summary = self.fetcher.fetch_latest(identity)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("Fetch for %s raised: %s", identity, e)
            logger.debug(traceback.format_exc())
            new_cursor, summary = None, None

        if not new_cursor:
            logger.info("[%s] No usable event for %s, will retry next round",
                        subscriber_id, identity)
            return ReconcileOutcome(Outcome.FETCH_FAILED)

        if cursor is None:
            logger.info("[%s] First event for %s (%s), not notifying",
                        subscriber_id, identity, new_cursor)
            return ReconcileOutcome(Outcome.FIRST_OBSERVATION, new_cursor)

        if new_cursor == cursor:
            logger.debug("[%s] No new event for %s", subscriber_id, identity)
            return ReconcileOutcome(Outcome.UNCHANGED, cursor)

        logger.info("[%s] New event for %s: %s -> %s",
                    subscriber_id, identity, cursor, new_cursor)
        return ReconcileOutcome(Outcome.NEW_ACTIVITY, new_cursor, summary)


def render_notification(identity, summary, web_url="https://github.com"):
    """Build the title, message and link sent for a NEW_ACTIVITY outcome."""
    kind = (summary.kind if summary else None) or "unknown"
    link = (summary.canonical_url if summary else None) or f"{web_url}{identity.web_path}"
    if identity.kind == USER:
        container = (summary.container_name if summary else None) or "unknown"
        return Notification(
            title=f"New activity by {identity.key}",
            message=f"Type: {kind}\nRepo: {container}",
            link=link,
        )
    return Notification(
        title=f"New activity in {identity.key}",
        message=f"Type: {kind}",
        link=link,
    )
