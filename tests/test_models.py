"""Tests for models — request snapshots and auth payloads."""
import pydantic
import pytest

from api_session.models.auth import LoginResponse, RefreshResponse, TokenStatus
from api_session.models.request import RequestOptions


# ── RequestOptions ───────────────────────────────────────────────────

def test_defaults():
    opts = RequestOptions()
    assert opts.method == "GET"
    assert opts.headers == {}
    assert opts.body is None
    assert opts.params is None


def test_frozen():
    opts = RequestOptions()
    with pytest.raises(pydantic.ValidationError):
        opts.method = "POST"


def test_snapshot_from_mapping_copies_headers():
    headers = {"X-A": "1"}
    opts = RequestOptions.snapshot({"method": "POST", "headers": headers})

    opts.headers["X-B"] = "2"
    assert headers == {"X-A": "1"}


def test_snapshot_of_instance_is_independent():
    original = RequestOptions(headers={"X-A": "1"})
    copy = RequestOptions.snapshot(original)

    assert copy == original
    assert copy.headers is not original.headers


def test_snapshot_none():
    assert RequestOptions.snapshot(None) == RequestOptions()


def test_with_header_returns_new_instance():
    original = RequestOptions(headers={"X-A": "1"})
    updated = original.with_header("X-B", "2")

    assert original.headers == {"X-A": "1"}
    assert updated.headers == {"X-A": "1", "X-B": "2"}


def test_with_header_replaces_case_variants():
    opts = RequestOptions(headers={"authorization": "Bearer old"}).with_bearer("new")
    assert opts.headers == {"Authorization": "Bearer new"}


def test_with_default_header_respects_caller():
    opts = RequestOptions(headers={"content-type": "text/plain"})
    assert opts.with_default_header("Content-Type", "application/json") is opts


def test_with_default_header_adds_missing():
    opts = RequestOptions().with_default_header("Content-Type", "application/json")
    assert opts.headers == {"Content-Type": "application/json"}


def test_has_header_case_insensitive():
    assert RequestOptions(headers={"X-Trace": "1"}).has_header("x-trace")


# ── Auth payloads ────────────────────────────────────────────────────

def test_refresh_response_requires_access():
    with pytest.raises(pydantic.ValidationError):
        RefreshResponse(refresh="R2")


def test_refresh_response_ignores_extra_fields():
    assert RefreshResponse(access="T2", token_type="bearer").refresh is None


def test_login_response():
    data = LoginResponse(access="A", refresh="R", user={"username": "alice"})
    assert data.user["username"] == "alice"


def test_token_status_defaults():
    status = TokenStatus(has_access_token=True, has_refresh_token=False)
    assert status.is_expired is None
    assert status.seconds_remaining is None
