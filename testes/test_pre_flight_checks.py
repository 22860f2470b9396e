import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from blog_migrator.utils.errors import PreFlightCheckError
from blog_migrator.utils.pre_flight_checks import run_wordpress_pre_flight_checks
from fakes import API_BASE, FakeResponse, FakeSession, make_settings


def test_valid_credentials_pass():
    session = FakeSession(lambda *a: FakeResponse(200, {"id": 1, "name": "admin"}))
    run_wordpress_pre_flight_checks(make_settings().wordpress, session=session)

    call = session.calls[0]
    assert call["url"] == f"{API_BASE}/users/me"
    assert call["auth"] == ("admin", "secret")


@pytest.mark.parametrize("status", [401, 403, 404, 500])
def test_error_answers_fail(status):
    session = FakeSession(lambda *a: FakeResponse(status, {"code": "rest_not_logged_in"}))
    with pytest.raises(PreFlightCheckError):
        run_wordpress_pre_flight_checks(make_settings().wordpress, session=session)


def test_network_error_fails():
    def handler(*args):
        raise requests.ConnectionError("refused")

    with pytest.raises(PreFlightCheckError, match="Network error"):
        run_wordpress_pre_flight_checks(make_settings().wordpress, session=FakeSession(handler))


def test_non_json_answer_fails():
    session = FakeSession(lambda *a: FakeResponse(200, None, text="<html>not wordpress</html>"))
    with pytest.raises(PreFlightCheckError):
        run_wordpress_pre_flight_checks(make_settings().wordpress, session=session)
