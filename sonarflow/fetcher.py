"""Fetch Sonar issues for the current branch or its pull request.

Preference order:
    1. explicit SonarQube PR link          -> PullRequestKey
    2. PR auto-detected from the provider  -> PullRequestId
    3. the given branch                    -> Branch
    4. "develop", once, when (3) returned no issues
"""

import logging

from sonarflow.client import SonarClient
from sonarflow.config import Config
from sonarflow.errors import TransientNetworkError
from sonarflow.models import (
    Branch,
    FetchOutcome,
    Issue,
    PullRequestId,
    PullRequestKey,
    ResolvedTarget,
)
from sonarflow.providers import resolve_pull_request
from sonarflow.url_builder import build_url, extract_pull_request_key

logger = logging.getLogger(__name__)

FALLBACK_BRANCH = "develop"


def fetch_issues(
    client: SonarClient,
    config: Config,
    branch: str,
    pr_link: str | None = None,
) -> FetchOutcome:
    """Resolve the query target for *branch* and fetch its issues.

    Configuration and the PR link are checked before any request is sent.
    PR detection failures degrade to the branch path; failures of the issues
    query propagate.

    Raises:
        ConfigurationError: invalid Sonar settings or malformed PR link
        SonarClientError:   the issues query failed
    """
    config.sonar.validate()

    if pr_link:
        target: ResolvedTarget = PullRequestKey(extract_pull_request_key(pr_link))
        logger.info("Using provided SonarQube PR link: %s", pr_link)
        return _fetch(client, config, target, f"PR: {pr_link}")

    detected = _detect_pull_request(config, branch)
    if detected is not None:
        how = "extracted from branch name" if detected.synthetic else "auto-detected from branch"
        logger.info("Using PR #%s (%s: %s)", detected.id, how, branch)
        return _fetch(client, config, detected, f"PR #{detected.id} ({how}: {branch})")

    logger.info("No PR detected, using branch: %s", branch)
    outcome = _fetch(client, config, Branch(branch), branch)
    if outcome.issues or branch == FALLBACK_BRANCH:
        return outcome

    logger.info("No issues found for branch '%s'. Falling back to branch: %s",
                branch, FALLBACK_BRANCH)
    return _fetch(client, config, Branch(FALLBACK_BRANCH), FALLBACK_BRANCH)


def _detect_pull_request(config: Config, branch: str) -> PullRequestId | None:
    try:
        return resolve_pull_request(config.provider, branch, config.credentials, config.repo)
    except TransientNetworkError as exc:
        logger.warning("Could not detect %s PR: %s", config.provider.value, exc)
        return None


def _fetch(
    client: SonarClient,
    config: Config,
    target: ResolvedTarget,
    source: str,
) -> FetchOutcome:
    query = config.sonar.query_for(target)
    url = build_url(query)
    payload = client.get_issues(url)
    issues = [Issue.from_raw(raw) for raw in payload.get("issues", [])]
    return FetchOutcome(
        issues=issues,
        source_description=source,
        target=target,
        payload=payload,
    )
