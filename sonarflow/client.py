"""SonarQube web API client.

Usage:
    client = SonarClient(token="squ_xxx")
    data   = client.get_issues(build_url(query))
    gate   = client.get_quality_gate_status(build_quality_gate_url(base, "my-project"))
"""

import logging
from typing import Any

import requests

from sonarflow.errors import (
    AuthenticationError,
    HttpError,
    NetworkError,
    NotFoundError,
    UnexpectedContentType,
)

logger = logging.getLogger(__name__)

CONTENT_PREVIEW_CHARS = 500
ERROR_PREVIEW_CHARS = 200


# ---------------------------------------------------------------------------
# Response validation
# ---------------------------------------------------------------------------

def validate_response(response: requests.Response) -> dict[str, Any]:
    """Return the JSON body of *response* or raise a typed failure.

    The content type is checked first: an HTML login page served with 200
    is an ``UnexpectedContentType``, not an empty result.

    Raises:
        UnexpectedContentType: declared content type is not JSON
        AuthenticationError:   HTTP 401 / 403
        NotFoundError:         HTTP 404
        HttpError:             any other non-2xx response
    """
    content_type = response.headers.get("Content-Type")
    if not content_type or "application/json" not in content_type.lower():
        raise UnexpectedContentType(
            content_type, response.status_code, response.text[:CONTENT_PREVIEW_CHARS]
        )

    status = response.status_code
    if not response.ok:
        body = response.text[:ERROR_PREVIEW_CHARS]
        if status in (401, 403):
            raise AuthenticationError(
                status, body,
                f"Authentication failed (HTTP {status}): check that your Sonar token is valid.",
            )
        if status == 404:
            raise NotFoundError(status, body, f"Resource not found (HTTP 404): {body}")
        raise HttpError(status, body)

    try:
        data = response.json()
    except ValueError as exc:
        raise HttpError(status, response.text[:ERROR_PREVIEW_CHARS],
                        f"Malformed JSON in response (status {status})") from exc

    if not isinstance(data, dict):
        raise HttpError(status, response.text[:ERROR_PREVIEW_CHARS],
                        "Expected a JSON object in the response")
    return data


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class SonarClient:
    """Thin wrapper around the SonarQube web API."""

    def __init__(self, token: str | None = None, timeout: int = 30) -> None:
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        # SonarQube auth: token as username, empty password
        if token:
            self._session.auth = (token, "")

    def get(self, url: str) -> dict[str, Any]:
        """GET a fully built URL and return the validated JSON object.

        Raises:
            NetworkError: timeout, connection failure or unusable URL
            plus everything ``validate_response`` raises.
        """
        logger.debug("GET %s", url)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(f"Unable to reach Sonar server at '{url}'") from exc
        except requests.exceptions.RequestException as exc:
            raise NetworkError(f"Request to '{url}' failed: {exc}") from exc

        return validate_response(response)

    def get_issues(self, url: str) -> dict[str, Any]:
        """Return the search payload; a missing ``issues`` field means zero issues."""
        data = self.get(url)
        if data.get("issues") is None:
            data["issues"] = []
        return data

    def get_quality_gate_status(self, url: str) -> dict[str, Any]:
        """Return the ``projectStatus`` object of a ``project_status`` response.

        Raises:
            HttpError: the response carries no ``projectStatus`` object
        """
        data = self.get(url)
        status = data.get("projectStatus")
        if not isinstance(status, dict):
            raise HttpError(200, str(data)[:ERROR_PREVIEW_CHARS],
                            "Missing 'projectStatus' in quality gate response")
        return status
