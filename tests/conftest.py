import pytest

_ENV_VARS = (
    "SONAR_TOKEN", "SONAR_URL", "SONAR_BASE_URL", "SONAR_COMPONENT_KEYS",
    "SONAR_ORGANIZATION", "SONAR_PROJECT_KEY",
    "GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO", "GITHUB_API_URL",
    "GIT_TOKEN", "GIT_EMAIL", "BITBUCKET_API_TOKEN", "BITBUCKET_EMAIL",
    "BITBUCKET_API_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell environment out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("sonarflow.git.user_email", lambda: None)
