"""Configuration settings module."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

# GitHub API access
GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com").rstrip("/")
GITHUB_WEB_URL = os.environ.get("GITHUB_WEB_URL", "https://github.com").rstrip("/")
GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN")
GITHUB_USER_AGENT = os.environ.get("GITHUB_USER_AGENT", "GitHubStalker/1.0")
# Timeout in seconds for every outbound HTTP request
REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "10"))

# Polling interval in seconds between reconciliation rounds
POLLING_INTERVAL = int(os.environ.get("POLLING_INTERVAL", "300"))
MAX_WORKERS = int(os.environ.get("MAX_WORKERS", "4"))
# How long a round waits for its pairs before giving up on the stragglers
ROUND_TIMEOUT = int(os.environ.get("ROUND_TIMEOUT", "240"))

# Subscription store (single JSON document)
STORE_PATH = os.environ.get("STORE_PATH", "/data/db.json")

# Primary notification (ntfy.sh), one topic per subscriber
NTFY_URL = os.environ.get("NTFY_URL", "https://ntfy.sh").rstrip("/")
NTFY_TOPIC_PREFIX = os.environ.get("NTFY_TOPIC_PREFIX", "github-stalker-")
NTFY_PRIORITY = int(os.environ.get("NTFY_PRIORITY", "3"))
NTFY_TAGS = os.environ.get("NTFY_TAGS", "octopus")
NTFY_USERNAME = os.environ.get("NTFY_USERNAME")
NTFY_PASSWORD = os.environ.get("NTFY_PASSWORD")

# Operator alerts (Twilio SMS) when a delivery fails
TWILIO_ENABLED = os.environ.get("TWILIO_ENABLED", "false").lower() == "true"
TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.environ.get("TWILIO_FROM_NUMBER")
TWILIO_TO_NUMBER = os.environ.get("TWILIO_TO_NUMBER")

# HTTP surface: liveness plus subscription commands
API_ENABLED = os.environ.get("API_ENABLED", "true").lower() == "true"
API_HOST = os.environ.get("API_HOST", "0.0.0.0")  # Listen on all interfaces by default
API_PORT = int(os.environ.get("API_PORT", os.environ.get("PORT", "3000")))
API_SECRET = os.environ.get("API_SECRET", "")  # Shared secret for subscription routes

# Logging
LOG_DIR = os.environ.get("LOG_DIR", "/app/logs")
DEBUG = os.environ.get("DEBUG", "false").lower() == "true"
