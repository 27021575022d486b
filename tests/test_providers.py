"""Tests for sonarflow/providers.py"""

import pytest
import requests

from sonarflow.errors import TransientNetworkError
from sonarflow.models import ProviderKind, PullRequestId
from sonarflow.providers import (
    BitbucketProvider,
    Credentials,
    GitHubProvider,
    RepoCoordinates,
    make_provider,
    pr_number_from_branch,
    resolve_pull_request,
)

GH = "https://api.github.com"
GH_PULLS = f"{GH}/repos/acme/web/pulls"
BB = "https://api.bitbucket.org/2.0"
BB_PULLS = f"{BB}/repositories/acme/web/pullrequests"

GH_CREDS = Credentials(token="ghp_test")
BB_CREDS = Credentials(token="bb_test", email="dev@acme.io")
REPO = RepoCoordinates(owner="acme", name="web")


def _resolve_github(branch):
    return resolve_pull_request(ProviderKind.GITHUB, branch, GH_CREDS, REPO)


def _resolve_bitbucket(branch):
    return resolve_pull_request(ProviderKind.BITBUCKET, branch, BB_CREDS, REPO)


# ---------------------------------------------------------------------------
# Branch-name heuristic
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("branch, expected", [
    ("pr/123", "123"),
    ("PR/7", "7"),
    ("pull/88", "88"),
    ("feature/ABC-1234-login", "1234"),
    ("feat/42", "42"),
    ("Fix/issue-9", "9"),
    ("bugfix/JIRA-55", "55"),
    ("main", None),
    ("feature/login", None),
    ("release/1.2", None),
])
def test_pr_number_from_branch(branch, expected):
    assert pr_number_from_branch(branch) == expected


# ---------------------------------------------------------------------------
# make_provider()
# ---------------------------------------------------------------------------

def test_make_provider_github():
    assert isinstance(make_provider(ProviderKind.GITHUB, GH_CREDS, REPO), GitHubProvider)


def test_make_provider_bitbucket():
    assert isinstance(make_provider(ProviderKind.BITBUCKET, BB_CREDS, REPO), BitbucketProvider)


@pytest.mark.parametrize("kind, creds, repo", [
    (ProviderKind.GITHUB, Credentials(), REPO),
    (ProviderKind.GITHUB, GH_CREDS, RepoCoordinates(owner="acme")),
    (ProviderKind.BITBUCKET, Credentials(token="bb_test"), REPO),
])
def test_make_provider_incomplete_returns_none(kind, creds, repo):
    assert make_provider(kind, creds, repo) is None


# ---------------------------------------------------------------------------
# resolve_pull_request() - GitHub
# ---------------------------------------------------------------------------

def test_github_open_pr_found(requests_mock):
    adapter = requests_mock.get(f"{GH_PULLS}?state=open", json=[{"number": 12}, {"number": 13}])

    assert _resolve_github("feature/login") == PullRequestId("12")

    request = adapter.last_request
    assert request.qs["head"] == ["acme:feature/login"]
    assert request.headers["Authorization"] == "token ghp_test"


def test_github_falls_back_to_all_states(requests_mock):
    requests_mock.get(f"{GH_PULLS}?state=open", json=[])
    all_adapter = requests_mock.get(f"{GH_PULLS}?state=all", json=[{"number": 5}])

    assert _resolve_github("feature/login") == PullRequestId("5")
    assert all_adapter.called_once


def test_github_api_match_beats_branch_heuristic(requests_mock):
    requests_mock.get(f"{GH_PULLS}?state=open", json=[{"number": 7}])

    result = _resolve_github("feature/ABC-999")
    assert result == PullRequestId("7")
    assert not result.synthetic


def test_github_heuristic_when_api_empty(requests_mock):
    requests_mock.get(f"{GH_PULLS}?state=open", json=[])
    requests_mock.get(f"{GH_PULLS}?state=all", json=[])

    result = _resolve_github("pr/321")
    assert result == PullRequestId("321", synthetic=True)


def test_github_nothing_found(requests_mock):
    requests_mock.get(f"{GH_PULLS}?state=open", json=[])
    requests_mock.get(f"{GH_PULLS}?state=all", json=[])
    assert _resolve_github("feature/login") is None


def test_github_custom_api_url(requests_mock):
    ghe = "https://ghe.acme.io/api/v3"
    requests_mock.get(f"{ghe}/repos/acme/web/pulls", json=[{"number": 1}])
    repo = RepoCoordinates(owner="acme", name="web", api_url=ghe + "/")
    assert resolve_pull_request(ProviderKind.GITHUB, "x", GH_CREDS, repo) == PullRequestId("1")


def test_github_server_error_raises_transient(requests_mock):
    requests_mock.get(GH_PULLS, status_code=500, text="boom")
    with pytest.raises(TransientNetworkError, match="500"):
        _resolve_github("pr/1")


def test_github_connection_error_raises_transient(requests_mock):
    requests_mock.get(GH_PULLS, exc=requests.exceptions.ConnectionError)
    with pytest.raises(TransientNetworkError, match="Unable to reach"):
        _resolve_github("main")


def test_github_malformed_body_raises_transient(requests_mock):
    requests_mock.get(GH_PULLS, json={"message": "weird"})
    with pytest.raises(TransientNetworkError):
        _resolve_github("main")


def test_missing_credentials_short_circuits(requests_mock):
    result = resolve_pull_request(ProviderKind.GITHUB, "pr/5", Credentials(), REPO)
    assert result is None
    assert requests_mock.call_count == 0


# ---------------------------------------------------------------------------
# resolve_pull_request() - Bitbucket
# ---------------------------------------------------------------------------

def test_bitbucket_pr_found(requests_mock):
    adapter = requests_mock.get(BB_PULLS, json={"values": [{"id": 31}, {"id": 32}]})

    assert _resolve_bitbucket("feature/login") == PullRequestId("31")

    request = adapter.last_request
    assert request.qs["q"] == ['source.branch.name="feature/login"']
    assert request.headers["Authorization"].startswith("Basic ")


def test_bitbucket_does_not_query_closed_prs(requests_mock):
    adapter = requests_mock.get(BB_PULLS, json={"values": []})

    assert _resolve_bitbucket("bugfix/PROJ-77") == PullRequestId("77", synthetic=True)
    assert adapter.call_count == 1


def test_bitbucket_missing_values_is_not_found(requests_mock):
    requests_mock.get(BB_PULLS, json={})
    assert _resolve_bitbucket("main") is None


def test_bitbucket_unauthorized_raises_transient(requests_mock):
    requests_mock.get(BB_PULLS, status_code=401, text="nope")
    with pytest.raises(TransientNetworkError):
        _resolve_bitbucket("main")


@pytest.mark.parametrize("values", [5, "31", {"id": 31}])
def test_bitbucket_malformed_values_raises_transient(requests_mock, values):
    requests_mock.get(BB_PULLS, json={"values": values})
    with pytest.raises(TransientNetworkError, match="values"):
        _resolve_bitbucket("feature/x")


def test_bitbucket_pull_request_without_id_raises_transient(requests_mock):
    requests_mock.get(BB_PULLS, json={"values": [{"title": "no id"}]})
    with pytest.raises(TransientNetworkError, match="'id'"):
        _resolve_bitbucket("feature/x")


@pytest.mark.parametrize("item", [{"number": None}, {"number": ""}, {"title": "x"}, "12"])
def test_github_pull_request_without_number_raises_transient(requests_mock, item):
    requests_mock.get(f"{GH_PULLS}?state=open", json=[item])
    with pytest.raises(TransientNetworkError, match="'number'"):
        _resolve_github("main")
