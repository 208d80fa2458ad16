import json
import stat

import pytest

from strava_ytd.credentials import Credentials, CredentialStore
from strava_ytd.errors import StorageError


def test_load_returns_none_when_file_is_missing(tmp_path) -> None:
    assert CredentialStore(tmp_path / "strava-auth.json").load() is None


def test_load_treats_blank_file_as_missing(tmp_path) -> None:
    path = tmp_path / "strava-auth.json"
    path.write_text("  \n", encoding="utf-8")
    assert CredentialStore(path).load() is None


def test_save_then_load_round_trips_and_restricts_permissions(tmp_path) -> None:
    path = tmp_path / "nested" / "strava-auth.json"
    store = CredentialStore(path)
    store.save(Credentials(refresh_token="r1", access_token="a1", expires_at=1700000000))

    assert store.load() == Credentials(refresh_token="r1", access_token="a1", expires_at=1700000000)
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert list(path.parent.glob("*.tmp")) == []


def test_save_overwrites_the_whole_record(tmp_path) -> None:
    path = tmp_path / "strava-auth.json"
    path.write_text(json.dumps({"refresh_token": "old", "access_token": "stale", "athlete": {"id": 1}}))

    CredentialStore(path).save(Credentials(refresh_token="new"))

    assert json.loads(path.read_text(encoding="utf-8")) == {"refresh_token": "new"}


def test_load_rejects_invalid_json(tmp_path) -> None:
    path = tmp_path / "strava-auth.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        CredentialStore(path).load()


def test_load_requires_refresh_token(tmp_path) -> None:
    path = tmp_path / "strava-auth.json"
    path.write_text(json.dumps({"access_token": "a1"}), encoding="utf-8")
    with pytest.raises(StorageError, match="refresh_token"):
        CredentialStore(path).load()


def test_read_errors_other_than_missing_are_fatal(tmp_path) -> None:
    # A directory where the file should be raises IsADirectoryError, not FileNotFoundError.
    path = tmp_path / "strava-auth.json"
    path.mkdir()
    with pytest.raises(StorageError):
        CredentialStore(path).load()
