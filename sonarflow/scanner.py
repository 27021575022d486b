"""Run the SonarQube scanner CLI locally and dump its report to disk."""

import logging
import shutil
import subprocess
from pathlib import Path

from sonarflow.config import SonarConfig
from sonarflow.errors import ConfigurationError, SonarflowError

logger = logging.getLogger(__name__)

SCANNER_EXECUTABLE = "sonar"
SCANNER_REPORT_FILENAME = "scanner-report.json"


class ScannerError(SonarflowError):
    """Raised when the scanner is missing or exits with a non-zero status."""


def build_scanner_args(sonar: SonarConfig, output_dir: str | Path) -> list[str]:
    """Return ``-D`` properties for the scanner.

    The token is only passed for a private instance.
    """
    project_key = sonar.component_key or sonar.project_key
    if not project_key:
        raise ConfigurationError("A Sonar project key is required to run a scan.")

    args: list[str] = []
    if sonar.auth_token:
        args.append(f"-Dsonar.token={sonar.auth_token}")
    args.append(f"-Dsonar.projectKey={project_key}")
    if sonar.organization:
        args.append(f"-Dsonar.organization={sonar.organization}")
    args.append(f"-Dsonar.scanner.dumpToFile={Path(output_dir) / SCANNER_REPORT_FILENAME}")
    return args


TOKEN_PLACEHOLDER = "-Dsonar.token=(token hidden)"


def redact(args: list[str]) -> list[str]:
    """Return *args* for display, with the token argument replaced by a placeholder."""
    return [TOKEN_PLACEHOLDER if a.startswith("-Dsonar.token=") else a for a in args]


def run_scan(sonar: SonarConfig, output_dir: str | Path) -> Path:
    """Run the scanner in the current directory and return the report path.

    Raises:
        ScannerError: scanner not installed or scan failed.
    """
    executable = shutil.which(SCANNER_EXECUTABLE)
    if executable is None:
        raise ScannerError(
            "Sonar scanner is not installed. Install it with: npm install -g @sonar/scan"
        )

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    args = build_scanner_args(sonar, output_dir)
    logger.info("Command: %s %s", SCANNER_EXECUTABLE, " ".join(redact(args)))

    result = subprocess.run([executable, *args], check=False)
    if result.returncode != 0:
        raise ScannerError(f"Sonar scanner exited with status {result.returncode}")
    return Path(output_dir) / SCANNER_REPORT_FILENAME
