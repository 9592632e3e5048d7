"""Notification service for telling subscribers about new activity."""
import base64
import logging

import requests
from twilio.rest import Client

from .errors import NotifyFailed

logger = logging.getLogger(__name__)

# Client errors that may go away on their own
RETRYABLE_CLIENT_ERRORS = (408, 429)


class NotificationService:
    """Delivers notifications to subscribers through their ntfy topic.

    When a delivery fails and Twilio is enabled, the operator gets an SMS so
    failures don't go unnoticed.
    """

    def __init__(self, config):
        """Initialize the notification service with configuration."""
        self.config = config
        self.twilio_client = None

        # Initialize Twilio client if enabled
        if self.config.TWILIO_ENABLED:
            try:
                self.twilio_client = Client(
                    self.config.TWILIO_ACCOUNT_SID,
                    self.config.TWILIO_AUTH_TOKEN
                )
                logger.info("Twilio client initialized successfully")
            except Exception as e:
                logger.error("Failed to initialize Twilio client: %s", e)

    def topic_for(self, subscriber_id):
        """Return the ntfy topic a subscriber listens on."""
        return f"{self.config.NTFY_TOPIC_PREFIX}{subscriber_id}"

    def send_notification(self, subscriber_id, title, message, link=None):
        """Send a notification to a subscriber. Raises NotifyFailed if it wasn't delivered."""
        try:
            self._send_ntfy_notification(subscriber_id, title, message, link)
        except NotifyFailed as e:
            if self.config.TWILIO_ENABLED and self.twilio_client:
                self._send_twilio_alert(subscriber_id, title, e)
            raise

    def _send_ntfy_notification(self, subscriber_id, title, message, link=None):
        """Send notification through ntfy.sh."""
        ntfy_url = f"{self.config.NTFY_URL}/{self.topic_for(subscriber_id)}"

        headers = {
            "Title": title,
            "Priority": str(self.config.NTFY_PRIORITY),
            "Tags": self.config.NTFY_TAGS,
        }

        if link:
            headers["Click"] = link
            headers["Actions"] = f"view, View on GitHub, {link}"

        # Add authentication if credentials are provided
        if self.config.NTFY_USERNAME and self.config.NTFY_PASSWORD:
            auth_str = f"{self.config.NTFY_USERNAME}:{self.config.NTFY_PASSWORD}"
            encoded_auth = base64.b64encode(auth_str.encode()).decode()
            headers["Authorization"] = f"Basic {encoded_auth}"
            logger.debug("Added Basic authentication to ntfy request")

        try:
            response = requests.post(
                ntfy_url, data=message.encode("utf-8"), headers=headers,
                timeout=self.config.REQUEST_TIMEOUT)
        except requests.RequestException as e:
            logger.error("Error sending ntfy notification to %s: %s", subscriber_id, e)
            raise NotifyFailed(f"ntfy request failed: {e}") from e

        if response.status_code == 200:
            logger.info("Successfully sent ntfy notification to %s: %s", subscriber_id, title)
            return

        permanent = (400 <= response.status_code < 500
                     and response.status_code not in RETRYABLE_CLIENT_ERRORS)
        logger.error(
            "Failed to send ntfy notification to %s. Status code: %s, Response: %s",
            subscriber_id, response.status_code, response.text)
        raise NotifyFailed(
            f"ntfy returned status {response.status_code}", permanent=permanent)

    def _send_twilio_alert(self, subscriber_id, title, error):
        """Tell the operator by SMS that a delivery failed."""
        if not self.twilio_client:
            logger.error("Twilio client not initialized, cannot send SMS")
            return False

        sms_message = (
            f"GitHub Stalker could not notify {subscriber_id}: {title}\n\n"
            f"Reason: {error}"
        )
        try:
            sms = self.twilio_client.messages.create(
                body=sms_message,
                from_=self.config.TWILIO_FROM_NUMBER,
                to=self.config.TWILIO_TO_NUMBER
            )
            logger.info("Sent Twilio SMS alert about failed delivery: %s", sms.sid)
            return True
        except Exception as e:
            logger.error("Error sending Twilio SMS alert: %s", e)
            return False
