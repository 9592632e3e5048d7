"""Periodic reconciliation rounds over every tracking in the store."""
import logging
import threading
import time
import traceback
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from .errors import NotifyFailed, StorageError
from .reconciler import Outcome, render_notification

logger = logging.getLogger(__name__)


@dataclass
class RoundReport:
    """What happened during one round."""

    pairs: int = 0
    outcomes: Counter = field(default_factory=Counter)
    notify_failures: int = 0
    errors: int = 0
    skipped: int = 0
    abandoned: int = 0
    duration: float = 0.0

    def count(self, outcome):
        return self.outcomes[outcome]

    def __str__(self):
        return (
            f"{self.pairs} pairs, "
            f"{self.count(Outcome.NEW_ACTIVITY)} new, "
            f"{self.count(Outcome.FIRST_OBSERVATION)} first, "
            f"{self.count(Outcome.UNCHANGED)} unchanged, "
            f"{self.count(Outcome.FETCH_FAILED)} fetch failures, "
            f"{self.notify_failures} notify failures, "
            f"{self.errors} errors, {self.skipped} skipped, "
            f"{self.abandoned} abandoned in {self.duration:.1f}s"
        )


class Scheduler:
    """Runs a reconciliation round every ``POLLING_INTERVAL`` seconds."""

    def __init__(self, config, store, reconciler, notifier):
        """Initialize the scheduler with its collaborators."""
        self.config = config
        self.store = store
        self.reconciler = reconciler
        self.notifier = notifier
        self._stop_event = threading.Event()
        self._round_lock = threading.Lock()
        # Pairs whose worker has not finished, possibly from an earlier round
        self._in_flight = set()
        self._in_flight_lock = threading.Lock()

    @property
    def running(self):
        return not self._stop_event.is_set()

    def stop(self):
        """Ask the scheduler to stop. The current round finishes the pairs it started."""
        if not self._stop_event.is_set():
            logger.info("Stopping scheduler")
        self._stop_event.set()

    def run(self):
        """Run rounds until stop() is called."""
        logger.info("Starting scheduler, polling every %s seconds", self.config.POLLING_INTERVAL)
        while self.running:
            try:
                self.run_round()
            except StorageError as e:
                logger.critical("Round halted, subscription store could not be written: %s", e)
                logger.debug(traceback.format_exc())
            except Exception as e:
                logger.error("Unhandled exception in reconciliation round: %s", e)
                logger.debug(traceback.format_exc())

            # Sleep for the configured interval, waking early on stop()
            self._stop_event.wait(self.config.POLLING_INTERVAL)

        logger.info("Scheduler stopped")

    def run_round(self):
        """Reconcile every tracking once and return a RoundReport.

        Returns None if another round is still in progress. Raises
        StorageError if a cursor could not be persisted; pairs not started
        by then are skipped.
        """
        if not self._round_lock.acquire(blocking=False):
            logger.warning("Previous round still in progress, skipping this tick")
            return None

        try:
            return self._run_round()
        finally:
            self._round_lock.release()

    def _run_round(self):
        started = time.monotonic()
        triples = self.store.snapshot()
        report = RoundReport(pairs=len(triples))
        logger.info("Starting activity check for %d tracked pairs", len(triples))

        halt = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=self.config.MAX_WORKERS, thread_name_prefix="reconcile")
        futures = {}
        for subscriber_id, identity, cursor in triples:
            pair = (subscriber_id, identity)
            with self._in_flight_lock:
                if pair in self._in_flight:
                    logger.warning("%s (subscriber %s) still running from an earlier round, skipping",
                                   identity, subscriber_id)
                    report.skipped += 1
                    continue
                self._in_flight.add(pair)
            future = executor.submit(self._process, subscriber_id, identity, cursor, halt)
            futures[future] = pair
            future.add_done_callback(lambda _, pair=pair: self._finished(pair))
        done, not_done = wait(futures, timeout=self.config.ROUND_TIMEOUT)
        executor.shutdown(wait=False, cancel_futures=True)

        storage_error = None
        for future in done:
            subscriber_id, identity = futures[future]
            try:
                result = future.result()
            except StorageError as e:
                storage_error = storage_error or e
                report.errors += 1
                continue
            except Exception as e:
                # Not expected: _process contains its own failures
                logger.error("Unexpected error reconciling %s for %s: %s",
                             identity, subscriber_id, e)
                report.errors += 1
                continue

            if result is None:
                report.skipped += 1
                continue
            outcome, notify_failed = result
            report.outcomes[outcome] += 1
            if notify_failed:
                report.notify_failures += 1

        for future in not_done:
            subscriber_id, identity = futures[future]
            logger.warning("Gave up waiting for %s (subscriber %s) this round",
                           identity, subscriber_id)
            report.abandoned += 1

        report.duration = time.monotonic() - started
        if storage_error is not None:
            logger.critical("Activity check halted after storage failure: %s", report)
            raise storage_error

        logger.info("Activity check complete: %s", report)
        return report

    def _process(self, subscriber_id, identity, cursor, halt):
        """Reconcile one pair; returns (Outcome, notify_failed) or None if skipped."""
        if halt.is_set() or not self.running:
            return None

        outcome = self.reconciler.reconcile(subscriber_id, identity, cursor)
        if not outcome.needs_store:
            return outcome.kind, False

        # Store the cursor first so a crash can't lead to a duplicate notification
        try:
            stored = self.store.update_cursor(
                subscriber_id, identity, outcome.cursor, expected=cursor)
        except StorageError:
            halt.set()
            raise
        if not stored or outcome.kind is not Outcome.NEW_ACTIVITY:
            return outcome.kind, False

        return outcome.kind, not self._notify(subscriber_id, identity, outcome)

    def _finished(self, pair):
        with self._in_flight_lock:
            self._in_flight.discard(pair)

    def _notify(self, subscriber_id, identity, outcome):
        """Send the notification for a NEW_ACTIVITY outcome. Returns True on success."""
        notification = render_notification(
            identity, outcome.summary, self.config.GITHUB_WEB_URL)
        try:
            self.notifier.send_notification(
                subscriber_id, notification.title, notification.message, notification.link)
            logger.info("Notified %s about new activity for %s", subscriber_id, identity)
            return True
        except NotifyFailed as e:
            if e.permanent:
                logger.warning(
                    "Subscriber %s is unreachable (%s); keeping the tracking for the next change",
                    subscriber_id, e)
            else:
                logger.error("Failed to notify %s about %s: %s", subscriber_id, identity, e)
        except Exception as e:
            logger.error("Failed to notify %s about %s: %s", subscriber_id, identity, e)
            logger.debug(traceback.format_exc())
        return False
