import json

import pytest

from conftest import FakeResponse, FakeSession
from strava_ytd.credentials import Credentials, CredentialStore
from strava_ytd.errors import ApiError, AuthorizationDenied, TokenExchangeFatal, TokenRefreshFailed
from strava_ytd.tokens import STRAVA_TOKEN_URL, TokenManager, TokenState


class FakeFlow:
    def __init__(self, code="auth-code", error=None):
        self.code = code
        self.error = error
        self.calls = 0

    def obtain_authorization_code(self, timeout=None):
        self.calls += 1
        if self.error:
            raise self.error
        return self.code


def token_payload(access="access-1", refresh="refresh-1"):
    return {"token_type": "Bearer", "access_token": access, "refresh_token": refresh, "expires_at": 1893456000}


def make_manager(tmp_path, session, flow=None, seed=None):
    store = CredentialStore(tmp_path / "strava-auth.json")
    return TokenManager("cid", "secret", store, flow or FakeFlow(), seed_refresh_token=seed, session=session)


def test_no_credentials_anywhere_runs_one_interactive_flow_and_persists(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(200, token_payload())])
    flow = FakeFlow(code="fresh-code")
    manager = make_manager(tmp_path, session, flow)

    assert manager.get_access_token() == "access-1"

    assert flow.calls == 1
    (_, url, kwargs), = session.calls
    assert url == STRAVA_TOKEN_URL
    assert kwargs["data"]["grant_type"] == "authorization_code"
    assert kwargs["data"]["code"] == "fresh-code"
    saved = json.loads((tmp_path / "strava-auth.json").read_text(encoding="utf-8"))
    assert saved["refresh_token"] == "refresh-1"
    assert saved["access_token"] == "access-1"
    assert manager.state is TokenState.VALID


def test_seeded_refresh_token_uses_refresh_grant_and_keeps_rotated_token(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(200, token_payload(refresh="rotated"))])
    flow = FakeFlow()
    manager = make_manager(tmp_path, session, flow, seed="env-refresh")

    assert manager.get_access_token() == "access-1"

    assert flow.calls == 0
    data = session.calls[0][2]["data"]
    assert data == {
        "client_id": "cid",
        "client_secret": "secret",
        "grant_type": "refresh_token",
        "refresh_token": "env-refresh",
    }
    assert manager.store.load().refresh_token == "rotated"


def test_valid_token_is_returned_without_io(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(200, token_payload())])
    manager = make_manager(tmp_path, session, seed="env-refresh")

    manager.get_access_token()
    assert manager.get_access_token() == "access-1"
    assert len(session.calls) == 1


def test_force_refresh_always_hits_token_endpoint(tmp_path) -> None:
    session = FakeSession(
        post=[FakeResponse(200, token_payload()), FakeResponse(200, token_payload(access="access-2"))]
    )
    manager = make_manager(tmp_path, session, seed="env-refresh")

    manager.get_access_token()
    assert manager.get_access_token(force_refresh=True) == "access-2"
    assert len(session.calls) == 2


def test_cached_access_token_is_not_trusted_until_refreshed(tmp_path) -> None:
    CredentialStore(tmp_path / "strava-auth.json").save(Credentials(refresh_token="stored", access_token="stale"))
    session = FakeSession(post=[FakeResponse(200, token_payload(access="fresh"))])
    manager = make_manager(tmp_path, session, seed="env-refresh")

    assert manager.get_access_token() == "fresh"
    # The stored record wins over the environment seed.
    assert session.calls[0][2]["data"]["refresh_token"] == "stored"


def test_rejected_refresh_grant_is_recoverable_error(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(400, {"message": "Bad Request"})])
    manager = make_manager(tmp_path, session, seed="revoked")

    with pytest.raises(TokenRefreshFailed) as excinfo:
        manager.get_access_token()
    assert excinfo.value.status_code == 400
    assert manager.state is TokenState.CACHED


def test_reauthorize_returns_new_access_token(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(200, token_payload(access="consented"))])
    manager = make_manager(tmp_path, session)

    assert manager.reauthorize() == "consented"
    assert manager.get_access_token() == "consented"
    assert len(session.calls) == 1


def test_rejected_authorization_code_is_fatal(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(401, {"message": "Authorization Error"})])
    manager = make_manager(tmp_path, session)

    with pytest.raises(TokenExchangeFatal):
        manager.reauthorize()
    assert manager.state is TokenState.UNSET
    assert manager.store.load() is None


def test_failed_flow_restores_previous_state(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(200, token_payload())])
    manager = make_manager(tmp_path, session, FakeFlow(error=AuthorizationDenied("no")), seed="seed")
    manager.get_access_token()

    with pytest.raises(AuthorizationDenied):
        manager.reauthorize()
    assert manager.state is TokenState.VALID


def test_token_response_without_refresh_token_is_rejected(tmp_path) -> None:
    session = FakeSession(post=[FakeResponse(200, {"access_token": "a"})])
    manager = make_manager(tmp_path, session, seed="seed")

    with pytest.raises(ApiError, match="refresh_token"):
        manager.get_access_token()
    assert manager.store.load() is None
