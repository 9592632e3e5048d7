"""Tracked identities: GitHub users and repositories."""
from dataclasses import dataclass

from .errors import InvalidIdentityFormat

USER = "user"
REPO = "repo"
KINDS = (USER, REPO)


@dataclass(frozen=True)
class User:
    """A GitHub user account. Names are stored lowercased."""

    name: str

    kind = USER

    @property
    def key(self):
        return self.name

    @property
    def api_path(self):
        return f"/users/{self.name}"

    @property
    def events_path(self):
        return f"/users/{self.name}/events/public"

    @property
    def web_path(self):
        return f"/{self.name}"

    def __str__(self):
        return self.key


@dataclass(frozen=True)
class Repo:
    """A GitHub repository, identified by owner and name."""

    owner: str
    name: str

    kind = REPO

    @property
    def key(self):
        return f"{self.owner}/{self.name}"

    @property
    def api_path(self):
        return f"/repos/{self.owner}/{self.name}"

    @property
    def events_path(self):
        return f"/repos/{self.owner}/{self.name}/events"

    @property
    def web_path(self):
        return f"/{self.owner}/{self.name}"

    def __str__(self):
        return self.key


def _check_part(part, text):
    if not part or any(ch.isspace() for ch in part):
        raise InvalidIdentityFormat(f"Invalid identity: {text!r}")


def parse_user(text):
    """Parse a GitHub username."""
    name = (text or "").strip()
    _check_part(name, text)
    if "/" in name:
        raise InvalidIdentityFormat(
            f"Invalid username {text!r}: use the repo form for owner/repo")
    return User(name.lower())


def parse_repo(text):
    """Parse an ``owner/repo`` pair."""
    value = (text or "").strip()
    parts = value.split("/")
    if len(parts) != 2:
        raise InvalidIdentityFormat(
            f"Invalid repo {text!r}: use the format owner/repo (e.g. octocat/Hello-World)")
    owner, name = parts
    _check_part(owner, text)
    _check_part(name, text)
    return Repo(owner, name)


def parse_identity(kind, text):
    """Parse ``text`` as an identity of the given kind (``user`` or ``repo``)."""
    if kind == USER:
        return parse_user(text)
    if kind == REPO:
        return parse_repo(text)
    raise InvalidIdentityFormat(f"Unknown identity kind: {kind!r}")


def identity_from_key(kind, key):
    """Rebuild an identity from the key it is stored under."""
    return parse_identity(kind, key)
