"""Issue report persistence and summary.

Functions:
    summarize_severities(issues)        -> dict   counts, most frequent first
    build_report(outcome)               -> dict
    write_report(outcome, output_dir)   -> Path   <output_dir>/issues.json
"""

import json
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path

from sonarflow.models import FetchOutcome, Issue

REPORT_FILENAME = "issues.json"


def summarize_severities(issues: list[Issue]) -> dict[str, int]:
    """Count issues per severity, sorted by descending count.

    Ties keep the order in which severities were first seen.
    """
    counts = Counter(issue.severity for issue in issues)
    return dict(sorted(counts.items(), key=lambda item: -item[1]))


def build_report(outcome: FetchOutcome) -> dict:
    payload = dict(outcome.payload)
    payload["issues"] = [issue.fields for issue in outcome.issues]
    return {
        "source":       outcome.source_description,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "total":       len(outcome.issues),
            "by_severity": summarize_severities(outcome.issues),
        },
        **payload,
    }


def write_report(outcome: FetchOutcome, output_dir: str | Path) -> Path:
    """Write the report for *outcome* to ``<output_dir>/issues.json``."""
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / REPORT_FILENAME
    path.write_text(
        json.dumps(build_report(outcome), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return path
