"""Pull request detection for the current branch.

Usage:
    pr = resolve_pull_request(ProviderKind.GITHUB, "feature/login", credentials, repo)
    if pr is not None:
        print(pr.id, pr.synthetic)

Detection is best-effort: missing credentials short-circuit to ``None``, and
provider failures raise ``TransientNetworkError`` for the caller to swallow.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import requests

from sonarflow.errors import TransientNetworkError
from sonarflow.models import ProviderKind, PullRequestId

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_BITBUCKET_API_URL = "https://api.bitbucket.org/2.0"

_BRANCH_PR_RE = re.compile(
    r"(?:pr|pull)/(\d+)|(?:feat|feature|fix|bugfix)/.*?(\d+)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Credentials:
    token: str | None = None
    email: str | None = None    # Bitbucket only


@dataclass(frozen=True)
class RepoCoordinates:
    owner: str | None = None
    name: str | None = None
    api_url: str | None = None


# ---------------------------------------------------------------------------
# Provider capability interface
# ---------------------------------------------------------------------------

class PullRequestProvider(ABC):
    """Lists pull requests whose source branch matches a given name."""

    #: Whether ``list_all_pull_requests_for_branch`` covers more than the open query.
    searches_closed = False

    def __init__(self, repo: RepoCoordinates, timeout: int = 30) -> None:
        self.repo = repo
        self._timeout = timeout
        self._session = requests.Session()

    @abstractmethod
    def list_open_pull_requests_for_branch(self, branch: str) -> list[str]:
        """Return ids of open PRs whose source branch is *branch*."""

    def list_all_pull_requests_for_branch(self, branch: str) -> list[str]:
        """Return ids of PRs in any state whose source branch is *branch*."""
        return []

    def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            raise TransientNetworkError(f"Unable to reach '{url}': {exc}") from exc

        if not response.ok:
            raise TransientNetworkError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransientNetworkError(f"Malformed JSON from {url}") from exc


class GitHubProvider(PullRequestProvider):
    searches_closed = True

    def __init__(self, repo: RepoCoordinates, token: str, timeout: int = 30) -> None:
        super().__init__(repo, timeout)
        self._session.headers.update({
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github.v3+json",
        })

    def list_open_pull_requests_for_branch(self, branch: str) -> list[str]:
        return self._list(branch, state="open")

    def list_all_pull_requests_for_branch(self, branch: str) -> list[str]:
        return self._list(branch, state="all")

    def _list(self, branch: str, state: str) -> list[str]:
        api_url = (self.repo.api_url or DEFAULT_GITHUB_API_URL).rstrip("/")
        url = f"{api_url}/repos/{self.repo.owner}/{self.repo.name}/pulls"
        data = self._get_json(url, {"head": f"{self.repo.owner}:{branch}", "state": state})
        if not isinstance(data, list):
            raise TransientNetworkError(f"Expected a list of pull requests from {url}")
        return _pull_request_ids(data, "number", url)


class BitbucketProvider(PullRequestProvider):

    def __init__(self, repo: RepoCoordinates, email: str, token: str, timeout: int = 30) -> None:
        super().__init__(repo, timeout)
        self._session.auth = (email, token)

    def list_open_pull_requests_for_branch(self, branch: str) -> list[str]:
        api_url = (self.repo.api_url or DEFAULT_BITBUCKET_API_URL).rstrip("/")
        url = f"{api_url}/repositories/{self.repo.owner}/{self.repo.name}/pullrequests"
        data = self._get_json(url, {"q": f'source.branch.name="{branch}"'})
        if not isinstance(data, dict):
            raise TransientNetworkError(f"Expected a paged pull request object from {url}")
        values = data.get("values")
        if values is None:
            return []
        if not isinstance(values, list):
            raise TransientNetworkError(f"Expected 'values' to be a list in the response from {url}")
        return _pull_request_ids(values, "id", url)


def _pull_request_ids(items: list[Any], field: str, url: str) -> list[str]:
    ids: list[str] = []
    for item in items:
        value = item.get(field) if isinstance(item, dict) else None
        if isinstance(value, bool) or not isinstance(value, (int, str)) or value == "":
            raise TransientNetworkError(f"Pull request without a usable '{field}' in response from {url}")
        ids.append(str(value))
    return ids


def make_provider(
    provider: ProviderKind,
    credentials: Credentials,
    repo: RepoCoordinates,
    timeout: int = 30,
) -> PullRequestProvider | None:
    """Return a provider client, or None when credentials/coordinates are incomplete."""
    if not credentials.token or not repo.owner or not repo.name:
        return None
    if provider is ProviderKind.GITHUB:
        return GitHubProvider(repo, credentials.token, timeout)
    if provider is ProviderKind.BITBUCKET:
        if not credentials.email:
            return None
        return BitbucketProvider(repo, credentials.email, credentials.token, timeout)
    return None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def pr_number_from_branch(branch: str) -> str | None:
    """Extract a PR number embedded in a branch name (``pr/12``, ``feature/ABC-34``)."""
    match = _BRANCH_PR_RE.search(branch)
    if not match:
        return None
    return match.group(1) or match.group(2)


def resolve_pull_request(
    provider: ProviderKind,
    branch: str,
    credentials: Credentials,
    repo: RepoCoordinates,
    timeout: int = 30,
) -> PullRequestId | None:
    """Find the PR whose source branch is *branch*.

    Order: open PRs, then (GitHub only) PRs in any state, then the
    branch-name heuristic. The first element of a result list wins.

    Raises:
        TransientNetworkError: provider unreachable, non-2xx or malformed body.
    """
    client = make_provider(provider, credentials, repo, timeout)
    if client is None:
        logger.info("%s configuration missing, skipping PR detection", provider.value)
        return None

    logger.info("Checking for PR associated with branch: %s", branch)
    ids = client.list_open_pull_requests_for_branch(branch)
    if ids:
        logger.info("Found PR #%s for branch: %s", ids[0], branch)
        return PullRequestId(ids[0])

    if client.searches_closed:
        ids = client.list_all_pull_requests_for_branch(branch)
        if ids:
            logger.info("Found PR #%s for branch: %s (closed/merged)", ids[0], branch)
            return PullRequestId(ids[0])

    number = pr_number_from_branch(branch)
    if number:
        logger.info("Extracted PR #%s from branch name: %s (not confirmed by %s)",
                    number, branch, provider.value)
        return PullRequestId(number, synthetic=True)

    logger.info("No PR found for branch: %s", branch)
    return None
