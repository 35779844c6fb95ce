"""
tests/conftest.py
"""
from __future__ import annotations

import datetime as _dt
import itertools
from pathlib import Path
from typing import Callable, Generator

import pytest
from flask.testing import FlaskClient
from pytest import MonkeyPatch

from tutorblog.accounts import create_account
from tutorblog.blog import app
from tutorblog.store import get_db, init_db

CSRF = "test-token"          # shared constant so the token matches the session
PASSWORD = "s3cret-pass"

_email_counter = itertools.count(1)


@pytest.fixture(scope="session")
def _tmp_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """One temp file for the whole test session (faster than per-test)."""
    return tmp_path_factory.mktemp("data") / "test.sqlite3"


@pytest.fixture(scope="session", autouse=True)
def _configure_app(_tmp_db_path: Path) -> None:
    """Configure the Flask app *once* before the first test runs."""
    app.config.update(
        TESTING=True,
        DATABASE=str(_tmp_db_path),
        SESSION_COOKIE_SECURE=False,
    )
    with app.app_context():
        init_db()


@pytest.fixture
def client() -> Generator[FlaskClient, None, None]:
    """Test client plus an app context, so ``get_db()`` works in the test body."""
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture
def db(client):
    return get_db()


@pytest.fixture
def fresh_db(db):
    """Empty tables for tests that care about exact slugs or counts."""
    db.execute("DELETE FROM post")
    db.execute("DELETE FROM account")
    db.commit()
    return db


@pytest.fixture(autouse=True, scope="session")
def _fast_clock():
    """
    Every ``store.utc_now()`` call returns a later timestamp than the one
    before, so "newest first" ordering is deterministic without sleeping.
    """
    from tutorblog import store

    counter = itertools.count()
    base = _dt.datetime(2099, 1, 1, tzinfo=_dt.timezone.utc)

    def _fake_now():
        return base + _dt.timedelta(seconds=next(counter))

    mp = MonkeyPatch()
    mp.setattr(store, "utc_now", _fake_now)
    yield
    mp.undo()


def new_email(prefix: str = "user") -> str:
    return f"{prefix}{next(_email_counter)}@example.com"


@pytest.fixture
def make_account(db) -> Callable[..., int]:
    """Factory: create an account with a unique e-mail, return its id."""

    def _make(*, admin: bool = True, email: str | None = None) -> int:
        return create_account(email or new_email(), PASSWORD, admin=admin, db=db)

    return _make


def login_as(client: FlaskClient, account_id: int) -> None:
    """Put *account_id* into the client's session, as a real login would."""
    with client.session_transaction() as sess:
        sess["account_id"] = account_id
        sess["csrf"] = CSRF
