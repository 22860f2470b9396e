from __future__ import annotations

import logging
from typing import Optional

import requests

from blog_migrator.config import WordPressSettings
from blog_migrator.utils.errors import PreFlightCheckError

logger = logging.getLogger(__name__)


def run_wordpress_pre_flight_checks(
    settings: WordPressSettings,
    session: Optional[requests.Session] = None,
) -> None:
    """
    Verifies that the WordPress site accepts the configured application password.

    Args:
        settings: The ``wordpress`` section of the configuration.
        session: Optional HTTP session, a new one by default.

    Raises:
        PreFlightCheckError: If the REST API is unreachable or the credentials are rejected.
    """
    logger.info("Running pre-flight checks...")
    session = session or requests.Session()
    url = f"{settings.api_base}/users/me"

    try:
        response = session.get(
            url,
            auth=(settings.app_user, settings.app_password),
            params={"context": "edit"},
            timeout=settings.timeout,
        )
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error while connecting to the WordPress REST API: {e}") from e

    if response.status_code in (401, 403):
        raise PreFlightCheckError(
            "WordPress rejected the application password; check wordpress.app_user and wordpress.app_password."
        )
    if response.status_code == 404:
        raise PreFlightCheckError(f"The WordPress REST API is not reachable at {settings.api_base}.")
    if response.status_code >= 400:
        raise PreFlightCheckError(f"Unexpected answer from {url}: HTTP {response.status_code}")

    try:
        user = response.json()
    except ValueError as e:
        raise PreFlightCheckError(f"{url} did not answer JSON; is {settings.base_url} a WordPress site?") from e
    if not isinstance(user, dict):
        raise PreFlightCheckError(f"{url} did not answer a user object; is {settings.base_url} a WordPress site?")

    logger.info("Pre-flight checks passed; authenticated as %s", user.get("name") or user.get("slug") or "unknown user")
