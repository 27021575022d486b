"""Configuration loading and validation.

Usage:
    config = load(".sonarflow.yaml")        # raises ConfigurationError on bad config
    config.sonar.mode                        # SonarMode.PUBLIC / SonarMode.PRIVATE
    generate_template(".sonarflow.yaml")    # writes example file to disk
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from sonarflow import git
from sonarflow.errors import ConfigurationError
from sonarflow.models import (
    DEFAULT_TIMEZONE,
    IssuesQuery,
    ProviderKind,
    ResolvedTarget,
    SonarMode,
)
from sonarflow.providers import Credentials, RepoCoordinates

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".sonarflow.yaml"
DEFAULT_SONAR_URL = "https://sonarcloud.io"
DEFAULT_OUTPUT_PATH = ".sonar"


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------

@dataclass
class SonarConfig:
    url: str = DEFAULT_SONAR_URL
    public: bool = False
    component_keys: str | None = None
    organization: str | None = None
    project_key: str | None = None
    namespace: str | None = None
    token: str | None = None
    timezone: str = DEFAULT_TIMEZONE

    @property
    def mode(self) -> SonarMode:
        """PUBLIC only when the public flag comes with component keys and organization."""
        if self.public and self.component_keys and self.organization:
            return SonarMode.PUBLIC
        return SonarMode.PRIVATE

    @property
    def component_key(self) -> str | None:
        if self.mode is SonarMode.PUBLIC:
            return self.component_keys
        return self.project_key

    @property
    def auth_token(self) -> str | None:
        """Token sent to the server; public instances are queried anonymously."""
        if self.mode is SonarMode.PUBLIC:
            return None
        return self.token

    def errors(self) -> list[str]:
        """Return human-readable problems with this configuration."""
        problems: list[str] = []
        if not self.url:
            problems.append(
                "  - 'sonar.url' is missing (or set the SONAR_BASE_URL environment variable)"
            )
        if self.mode is SonarMode.PRIVATE:
            if not self.token:
                problems.append(
                    "  - a Sonar token is required for a private instance "
                    "(set SONAR_TOKEN, or enable 'sonar.public' with component keys "
                    "and organization)"
                )
            if not self.project_key:
                problems.append(
                    "  - 'sonar.project_key' is missing (or set 'repository.name')"
                )
        return problems

    def validate(self) -> None:
        """Raise ConfigurationError if the Sonar settings cannot build a query."""
        problems = self.errors()
        if problems:
            raise ConfigurationError("Invalid Sonar configuration:\n" + "\n".join(problems))

    def query_for(self, target: ResolvedTarget) -> IssuesQuery:
        return IssuesQuery(
            base_url=self.url,
            mode=self.mode,
            target=target,
            component_key=self.component_key or "",
            organization=self.organization if self.mode is SonarMode.PUBLIC else None,
            namespace=self.namespace,
            timezone=self.timezone,
        )


@dataclass
class Config:
    provider: ProviderKind
    sonar: SonarConfig
    credentials: Credentials = field(default_factory=Credentials)
    repo: RepoCoordinates = field(default_factory=RepoCoordinates)
    output_path: str = DEFAULT_OUTPUT_PATH


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = DEFAULT_CONFIG_PATH) -> Config:
    """Load and validate configuration from a YAML file.

    Secrets come from the environment (SONAR_TOKEN, GITHUB_TOKEN,
    BITBUCKET_API_TOKEN, ...); environment variables also override the
    non-secret file values.

    Raises:
        ConfigurationError: if the file is missing, malformed, or required
                            fields are absent.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigurationError(
            f"Config file not found: '{config_path}'\n"
            "Run `sonarflow init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse '{config_path}': {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"'{config_path}' must be a YAML mapping at the top level.")

    provider = _parse_provider(raw.get("provider"))
    repo_section = _section(raw, "repository")
    sonar_section = _section(raw, "sonar")

    if provider is ProviderKind.GITHUB:
        repo = RepoCoordinates(
            owner=_env("GITHUB_OWNER") or repo_section.get("owner"),
            name=_env("GITHUB_REPO") or repo_section.get("name"),
            api_url=_env("GITHUB_API_URL") or _section(raw, "github").get("api_url"),
        )
        credentials = Credentials(token=_env("GITHUB_TOKEN", "GIT_TOKEN"))
    else:
        repo = RepoCoordinates(
            owner=repo_section.get("owner"),
            name=repo_section.get("name"),
            api_url=_env("BITBUCKET_API_URL") or _section(raw, "bitbucket").get("api_url"),
        )
        credentials = Credentials(
            token=_env("BITBUCKET_API_TOKEN", "GIT_TOKEN"),
            email=_env("BITBUCKET_EMAIL", "GIT_EMAIL") or git.user_email(),
        )

    sonar = SonarConfig(
        url=_env("SONAR_BASE_URL", "SONAR_URL") or sonar_section.get("url") or DEFAULT_SONAR_URL,
        public=bool(sonar_section.get("public", False)),
        component_keys=_env("SONAR_COMPONENT_KEYS") or sonar_section.get("component_keys"),
        organization=_env("SONAR_ORGANIZATION") or sonar_section.get("organization"),
        project_key=(
            _env("SONAR_PROJECT_KEY") or sonar_section.get("project_key") or repo.name
        ),
        namespace=sonar_section.get("namespace"),
        token=_env("SONAR_TOKEN"),
        timezone=sonar_section.get("timezone") or DEFAULT_TIMEZONE,
    )
    if sonar.public and sonar.mode is SonarMode.PRIVATE:
        logger.warning(
            "'sonar.public' is set but component keys or organization are missing; "
            "treating the server as a private instance"
        )

    config = Config(
        provider=provider,
        sonar=sonar,
        credentials=credentials,
        repo=repo,
        output_path=str(raw.get("output_path") or DEFAULT_OUTPUT_PATH),
    )
    _validate(config)
    return config


def _validate(config: Config) -> None:
    """Raise ConfigurationError if required fields are missing."""
    errors = config.sonar.errors()
    if errors:
        raise ConfigurationError("Invalid configuration:\n" + "\n".join(errors))


def _parse_provider(value: Any) -> ProviderKind:
    if not value:
        raise ConfigurationError("'provider' is required (github or bitbucket).")
    try:
        return ProviderKind(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"'provider' must be either 'github' or 'bitbucket', got '{value}'."
        ) from None


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'{name}' must be a mapping.")
    return section


def _env(*names: str) -> str | None:
    """Return the first non-empty environment variable among *names*."""
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
provider: github              # github | bitbucket
output_path: .sonar           # issues.json is written here

repository:
  owner: my-org
  name: my-repo

github:
  api_url: "https://api.github.com"

bitbucket:
  api_url: "https://api.bitbucket.org/2.0"

sonar:
  url: "https://sonarcloud.io"
  public: true                # SonarCloud; set false for a self-hosted SonarQube
  component_keys: "my-org_my-repo"
  organization: "my-org"
  # project_key: "my-repo"    # self-hosted component, defaults to repository.name
  # namespace: "my-group"     # optional prefix: components=<namespace>/<project_key>
  # timezone: "Europe/Rome"

# Secrets are read from the environment, never from this file:
#   SONAR_TOKEN                       required for a self-hosted SonarQube
#   GITHUB_TOKEN                      PR detection on GitHub
#   BITBUCKET_API_TOKEN, GIT_EMAIL    PR detection on Bitbucket
"""


def generate_template(output_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Write a template config file to *output_path*.

    Raises:
        ConfigurationError: if the file already exists.
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigurationError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
