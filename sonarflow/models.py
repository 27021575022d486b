"""Data models shared by the resolver, the URL builder and the fetcher.

Contains:
    - ProviderKind, SonarMode       (enums)
    - Branch, PullRequestKey, PullRequestId  (ResolvedTarget variants)
    - IssuesQuery
    - Issue
    - FetchOutcome
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from sonarflow.errors import ConfigurationError

SEVERITIES = ("BLOCKER", "CRITICAL", "MAJOR", "MINOR", "INFO")
UNKNOWN_SEVERITY = "UNKNOWN"

DEFAULT_TIMEZONE = "Europe/Rome"


class ProviderKind(str, Enum):
    GITHUB = "github"
    BITBUCKET = "bitbucket"


class SonarMode(str, Enum):
    PUBLIC = "public"     # multi-tenant (SonarCloud)
    PRIVATE = "private"   # self-hosted (SonarQube)


# ---------------------------------------------------------------------------
# Resolved targets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Branch:
    name: str


@dataclass(frozen=True)
class PullRequestKey:
    """PR key taken from an explicit SonarQube link."""
    key: str


@dataclass(frozen=True)
class PullRequestId:
    """PR id found by auto-detection.

    ``synthetic`` is True when the id was extracted from the branch name
    rather than returned by the provider API.
    """
    id: str
    synthetic: bool = False


ResolvedTarget = Union[Branch, PullRequestKey, PullRequestId]


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssuesQuery:
    base_url: str
    mode: SonarMode
    target: ResolvedTarget
    component_key: str
    organization: str | None = None
    namespace: str | None = None
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self) -> None:
        if not self.component_key:
            raise ConfigurationError(
                "A Sonar component/project key is required to query issues."
            )
        if self.mode is SonarMode.PUBLIC and not self.organization:
            raise ConfigurationError(
                "Public Sonar mode requires both component keys and an organization."
            )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class Issue:
    severity: str
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "Issue":
        severity = raw.get("severity")
        if severity not in SEVERITIES:
            severity = UNKNOWN_SEVERITY
        return cls(severity=severity, fields=raw)


@dataclass
class FetchOutcome:
    issues: list[Issue]
    source_description: str
    target: ResolvedTarget
    payload: dict[str, Any] = field(default_factory=dict)
