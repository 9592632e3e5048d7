"""GitHub REST client: identity lookups and the latest event of a feed."""
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from .errors import FetchFailed
from .identity import USER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityProfile:
    """Display metadata for an identity that exists on GitHub."""

    identity: object
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class EventSummary:
    """What a notification needs to know about the newest event."""

    kind: Optional[str]
    container_name: Optional[str]
    canonical_url: str


def canonical_url(url, api_url="https://api.github.com", web_url="https://github.com"):
    """Rewrite an API repo URL (``<api>/repos/o/r``) to its web form (``<web>/o/r``).

    URLs that are not API repo URLs are returned unchanged.
    """
    prefix = f"{api_url}/repos/"
    if url and url.startswith(prefix):
        return f"{web_url}/{url[len(prefix):]}"
    return url


class GitHubClient:
    """Talks to the GitHub REST API on behalf of the tracking engine."""

    def __init__(self, config):
        """Initialize the client with configuration."""
        self.config = config

    def _headers(self):
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.config.GITHUB_USER_AGENT,
        }
        if self.config.GITHUB_TOKEN:
            headers["Authorization"] = f"token {self.config.GITHUB_TOKEN}"
        return headers

    def _get(self, path, params=None):
        url = f"{self.config.GITHUB_API_URL}{path}"
        logger.debug("[GitHub API] Requesting: %s", url)
        return requests.get(
            url, headers=self._headers(), params=params,
            timeout=self.config.REQUEST_TIMEOUT)

    def lookup(self, identity):
        """Check that an identity exists and return its profile, or None if it doesn't.

        Raises FetchFailed when GitHub can't give a definite answer (network
        error, rate limiting, server error).
        """
        try:
            response = self._get(identity.api_path)
        except requests.RequestException as e:
            logger.error("Error looking up %s on GitHub: %s", identity, e)
            raise FetchFailed(f"Could not reach GitHub to look up {identity}: {e}") from e

        if response.status_code == 404:
            logger.info("GitHub %s not found: %s", identity.kind, identity)
            return None
        if response.status_code != 200:
            logger.error("GitHub lookup for %s failed. Status code: %s, Response: %s",
                         identity, response.status_code, response.text[:300])
            raise FetchFailed(
                f"GitHub lookup for {identity} failed with status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise FetchFailed(f"GitHub returned invalid JSON for {identity}") from e
        if not isinstance(data, dict):
            return None

        if identity.kind == USER:
            if not data.get("login"):
                return None
            return IdentityProfile(identity, data.get("avatar_url"))

        if not data.get("full_name"):
            return None
        owner = data.get("owner")
        avatar_url = owner.get("avatar_url") if isinstance(owner, dict) else None
        return IdentityProfile(identity, avatar_url)

    def fetch_latest(self, identity):
        """Return (cursor, summary) for the newest event of the identity's feed.

        Any failure, including an empty or malformed feed, gives (None, None).
        """
        try:
            response = self._get(identity.events_path, params={"per_page": 1})
        except requests.RequestException as e:
            logger.warning("Error fetching events for %s: %s", identity, e)
            return None, None

        if response.status_code != 200:
            logger.warning("Fetching events for %s failed. Status code: %s",
                           identity, response.status_code)
            return None, None

        try:
            events = response.json()
        except ValueError:
            logger.warning("GitHub returned invalid JSON for events of %s", identity)
            return None, None

        if not isinstance(events, list) or not events:
            logger.debug("No events for %s", identity)
            return None, None
        event = events[0]
        if not isinstance(event, dict) or event.get("id") in (None, ""):
            logger.warning("Malformed latest event for %s: %r", identity, event)
            return None, None

        return str(event["id"]), self._summarize(identity, event)

    def _summarize(self, identity, event):
        repo = event.get("repo")
        if not isinstance(repo, dict):
            repo = {}
        url = canonical_url(repo.get("url"), self.config.GITHUB_API_URL, self.config.GITHUB_WEB_URL)
        if not url:
            url = f"{self.config.GITHUB_WEB_URL}{identity.web_path}"
        return EventSummary(
            kind=event.get("type"),
            container_name=repo.get("name"),
            canonical_url=url,
        )
