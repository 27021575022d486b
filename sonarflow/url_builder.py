"""Build SonarQube/SonarCloud "search issues" URLs.

Usage:
    base = normalize_endpoint("https://sonar.example.com/project/issues?id=x")
    key  = extract_pull_request_key("https://sonarcloud.io/project/issues?id=p&pullRequest=12")
    url  = build_url(IssuesQuery(base, SonarMode.PRIVATE, Branch("main"), "my-project"))
"""

import re
from urllib.parse import unquote, urlencode, urlsplit, urlunsplit

from sonarflow.errors import ConfigurationError
from sonarflow.models import (
    Branch,
    IssuesQuery,
    PullRequestId,
    PullRequestKey,
    SonarMode,
)

SEARCH_PATH = "/api/issues/search"
QUALITY_GATE_PATH = "/api/qualitygates/project_status"
PAGE_SIZE = 100

_PUBLIC_FACETS = ("impactSoftwareQualities", "impactSeverities")
_PRIVATE_FACETS = (
    "cleanCodeAttributeCategories",
    "impactSoftwareQualities",
    "severities",
    "types",
    "impactSeverities",
    "codeVariants",
)

_WEB_ISSUES_SUFFIX_RE = re.compile(r"/project/issues$")
_API_ROOT_SUFFIX_RE = re.compile(r"/api(?:/issues)?$")
_PR_KEY_RE = re.compile(r"pullRequest=([^&#]+)")

PR_LINK_EXAMPLE = "https://sonarcloud.io/project/issues?id=PROJECT&pullRequest=PR_KEY"


def normalize_endpoint(raw: str) -> str:
    """Return the canonical ``/api/issues/search`` URL for *raw*.

    Accepts a web UI link (``.../project/issues?id=...``), an API root
    (``.../api`` or ``.../api/issues``), a bare server URL, or a URL already
    pointing at the search route. Idempotent.
    """
    parts = urlsplit(raw.strip())
    path = parts.path
    if SEARCH_PATH in path:
        path = path[: path.index(SEARCH_PATH)]
    else:
        path = _WEB_ISSUES_SUFFIX_RE.sub("", path.rstrip("/")).rstrip("/")
        path = _API_ROOT_SUFFIX_RE.sub("", path)
    return urlunsplit((parts.scheme, parts.netloc, f"{path}{SEARCH_PATH}", "", ""))


def server_root(raw: str) -> str:
    """Return the server URL (context path included) behind any accepted endpoint form."""
    return normalize_endpoint(raw)[: -len(SEARCH_PATH)]


def extract_pull_request_key(link: str) -> str:
    """Return the PR key from a SonarQube link containing ``pullRequest=<key>``.

    Raises:
        ConfigurationError: if the link carries no PR key.
    """
    match = _PR_KEY_RE.search(link or "")
    if not match:
        raise ConfigurationError(
            f"Invalid SonarQube PR link '{link}'. Expected format: {PR_LINK_EXAMPLE}"
        )
    return unquote(match.group(1))


def build_url(query: IssuesQuery) -> str:
    """Return the full search URL for *query*.

    Exactly one of ``branch`` or ``pullRequest`` is set, depending on the
    query target.
    """
    params: dict[str, str] = {
        "s": "FILE_LINE",
        "ps": str(PAGE_SIZE),
        "additionalFields": "_all",
    }

    if query.mode is SonarMode.PUBLIC:
        params["issueStatuses"] = "OPEN,CONFIRMED"
        params["facets"] = ",".join(_PUBLIC_FACETS)
        params["componentKeys"] = query.component_key
        params["organization"] = query.organization or ""
    else:
        params["inNewCodePeriod"] = "true"
        params["issueStatuses"] = "CONFIRMED,OPEN"
        params["facets"] = ",".join(_PRIVATE_FACETS)
        params["components"] = _components(query)
        params["timeZone"] = query.timezone

    params.update(_target_params(query.target))
    return f"{normalize_endpoint(query.base_url)}?{urlencode(params)}"


def build_quality_gate_url(base_url: str, project_key: str, target=None) -> str:
    """Return the ``project_status`` URL for *project_key*, scoped to *target* if given."""
    params = {"projectKey": project_key}
    if target is not None:
        params.update(_target_params(target))
    return f"{server_root(base_url)}{QUALITY_GATE_PATH}?{urlencode(params)}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _components(query: IssuesQuery) -> str:
    if query.namespace:
        return f"{query.namespace}/{query.component_key}"
    return query.component_key


def _target_params(target) -> dict[str, str]:
    if isinstance(target, Branch):
        return {"branch": target.name}
    if isinstance(target, PullRequestKey):
        return {"pullRequest": target.key}
    if isinstance(target, PullRequestId):
        return {"pullRequest": target.id}
    raise TypeError(f"Unsupported query target: {target!r}")
