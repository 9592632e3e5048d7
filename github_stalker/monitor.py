"""Main service: wires the store, GitHub client, notifier and scheduler together."""
import logging
import signal

from .api import ApiServer
from .github import GitHubClient
from .notifier import NotificationService
from .reconciler import Reconciler
from .scheduler import Scheduler
from .store import SubscriptionStore
from .subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)


class GitHubStalker:
    """Watches GitHub users and repositories for the subscribers in the store."""

    def __init__(self, config, github=None, notifier=None):
        """Initialize the service with configuration.

        ``github`` and ``notifier`` default to the real GitHub client and
        ntfy notification service.
        """
        self.config = config

        # Validate required configuration
        self._validate_config()

        # Loading fails loudly on a corrupt store; nothing is started then
        self.store = SubscriptionStore(config.STORE_PATH)
        self.store.load()

        # Initialize services
        self.github = github or GitHubClient(config)
        self.notifier = notifier or NotificationService(config)
        self.subscriptions = SubscriptionManager(self.store, self.github)
        self.scheduler = Scheduler(
            config, self.store, Reconciler(self.github), self.notifier)

        # Initialize API server if enabled
        self.api_server = None
        if config.API_ENABLED:
            self.api_server = ApiServer(config, self.subscriptions)

    def _validate_config(self):
        """Validate that the configuration is usable."""
        problems = []

        for name in ("POLLING_INTERVAL", "MAX_WORKERS", "ROUND_TIMEOUT", "REQUEST_TIMEOUT"):
            if getattr(self.config, name) <= 0:
                problems.append(f"{name} must be positive")

        if self.config.TWILIO_ENABLED:
            for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN",
                         "TWILIO_FROM_NUMBER", "TWILIO_TO_NUMBER"):
                if not getattr(self.config, name):
                    problems.append(f"{name} is required when TWILIO_ENABLED is true")

        if not self.config.GITHUB_TOKEN:
            logger.warning("GITHUB_TOKEN is not set - unauthenticated requests are heavily rate limited")

        if self.config.API_ENABLED and not self.config.API_SECRET:
            logger.warning("API_SECRET is not set - this is a security risk")

        if problems:
            error_msg = f"Invalid configuration: {'; '.join(problems)}"
            logger.error(error_msg)
            raise ValueError(error_msg)

    def setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        # pylint: disable=unused-argument
        def signal_handler(sig, frame):
            logger.info("Received signal %s, shutting down gracefully...", sig)
            self.scheduler.stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def run(self):
        """Start the API server and the polling loop."""
        self.setup_signal_handlers()
        logger.info("Starting GitHub Stalker, store at %s", self.config.STORE_PATH)

        # Start the API server if enabled
        if self.api_server:
            self.api_server.start()

        try:
            self.scheduler.run()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt, shutting down...")
            self.scheduler.stop()

        logger.info("GitHub Stalker stopped")
