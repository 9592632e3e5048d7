import pytest

from github_stalker.errors import InvalidIdentityFormat
from github_stalker.identity import REPO, USER, Repo, User, identity_from_key, parse_identity


def test_user_names_are_case_folded():
    assert parse_identity(USER, "  OctoCat ") == User("octocat")
    assert parse_identity(USER, "OctoCat").key == "octocat"


def test_repo_keeps_case_and_exposes_paths():
    repo = parse_identity(REPO, "octocat/Hello-World")
    assert repo == Repo("octocat", "Hello-World")
    assert repo.key == "octocat/Hello-World"
    assert repo.api_path == "/repos/octocat/Hello-World"
    assert repo.events_path == "/repos/octocat/Hello-World/events"


def test_user_paths():
    user = User("octocat")
    assert user.api_path == "/users/octocat"
    assert user.events_path == "/users/octocat/events/public"


@pytest.mark.parametrize("text", ["", "   ", "octocat", "a/b/c", "/repo", "owner/", "own er/repo"])
def test_invalid_repo_formats(text):
    with pytest.raises(InvalidIdentityFormat):
        parse_identity(REPO, text)


@pytest.mark.parametrize("text", ["", "octo cat", "octocat/repo", None])
def test_invalid_user_names(text):
    with pytest.raises(InvalidIdentityFormat):
        parse_identity(USER, text)


def test_unknown_kind_is_rejected():
    with pytest.raises(InvalidIdentityFormat):
        parse_identity("org", "github")


def test_user_and_repo_never_compare_equal():
    assert User("octocat") != Repo("octocat", "octocat")
    assert len({User("octocat"), User("octocat"), Repo("o", "r")}) == 2


def test_identity_from_key_round_trips_store_keys():
    assert identity_from_key(REPO, "o/r") == Repo("o", "r")
    assert identity_from_key(USER, "octocat") == User("octocat")


def test_web_paths():
    assert User("octocat").web_path == "/octocat"
    assert Repo("octocat", "Hello-World").web_path == "/octocat/Hello-World"
