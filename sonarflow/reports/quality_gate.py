"""Quality gate status of the configured project.

Functions:
    fetch_quality_gate(client, sonar, target)  -> dict   the projectStatus object
    failed_conditions(status)                  -> list   conditions in WARN/ERROR
    format_condition(condition)                -> str
"""

from sonarflow.client import SonarClient
from sonarflow.config import SonarConfig
from sonarflow.models import ResolvedTarget, SonarMode
from sonarflow.url_builder import build_quality_gate_url

_FAILING_STATUSES = ("ERROR", "WARN")


def fetch_quality_gate(
    client: SonarClient,
    sonar: SonarConfig,
    target: ResolvedTarget | None = None,
) -> dict:
    """Return the quality gate status of the project, optionally for one branch or PR.

    Raises:
        ConfigurationError: Sonar settings incomplete (checked before any request)
        plus everything ``SonarClient.get_quality_gate_status`` raises.
    """
    sonar.validate()
    project_key = sonar.component_key
    if sonar.mode is SonarMode.PRIVATE and sonar.namespace:
        project_key = f"{sonar.namespace}/{project_key}"
    url = build_quality_gate_url(sonar.url, project_key, target)
    return client.get_quality_gate_status(url)


def failed_conditions(status: dict) -> list[dict]:
    conditions = status.get("conditions") or []
    return [
        c for c in conditions
        if isinstance(c, dict) and c.get("status") in _FAILING_STATUSES
    ]


def format_condition(condition: dict) -> str:
    # e.g. "new_coverage: 41.0 (ERROR, threshold LT 80)"
    return (
        f"{condition.get('metricKey', '?')}: {condition.get('actualValue', '-')} "
        f"({condition.get('status')}, threshold {condition.get('comparator', '')} "
        f"{condition.get('errorThreshold', '-')})"
    )
