"""sonarflow: fetch Sonar issues for the current branch or its pull request."""

__version__ = "0.1.0"
