"""
Accounts, password checks and the session principal.

Nothing in here reads the Flask session: the web layer resolves a
``Principal`` once per request and hands it to whoever needs it.
"""

import re
import secrets
import sqlite3
from functools import lru_cache
from typing import NamedTuple

from werkzeug.security import check_password_hash, generate_password_hash

from tutorblog import store
from tutorblog.errors import ValidationError

PASSWORD_MIN_LENGTH = 6
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")


class Principal(NamedTuple):
    """Who is asking.  ``account_id`` is None for anonymous visitors."""

    account_id: int | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.account_id is not None


ANONYMOUS = Principal()


###############################################################################
# Passwords
###############################################################################
def hash_password(password: str) -> str:
    """Salted, cost-parameterised hash (werkzeug's default scheme)."""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of *password* against a stored hash."""
    if not password or not password_hash:
        return False
    return check_password_hash(password_hash, password)


@lru_cache(maxsize=1)
def _decoy_hash() -> str:
    return hash_password(secrets.token_hex(16))


def _check_new_password(password: str | None, errors: dict[str, str]) -> None:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        errors["password"] = (
            f"is too short (minimum is {PASSWORD_MIN_LENGTH} characters)"
        )


###############################################################################
# Accounts
###############################################################################
def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def display_name(email: str | None) -> str:
    """admin@example.com → Admin"""
    if not email:
        return "Unknown Author"
    return email.split("@", 1)[0].capitalize()


def find_account(account_id: int | None, *, db):
    if account_id is None:
        return None
    return db.execute("SELECT * FROM account WHERE id=?", (account_id,)).fetchone()


def find_account_by_email(email: str | None, *, db):
    addr = normalize_email(email)
    if not addr:
        return None
    return db.execute("SELECT * FROM account WHERE email=?", (addr,)).fetchone()


def _check_email(email: str, errors: dict[str, str], *, db, exclude_id=None) -> None:
    if not email:
        errors["email"] = "can't be blank"
    elif not EMAIL_RE.match(email):
        errors["email"] = "must be a valid email address"
    elif db.execute(
        "SELECT 1 FROM account WHERE email=? AND id IS NOT ?", (email, exclude_id)
    ).fetchone():
        errors["email"] = "has already been taken"


def create_account(email: str, password: str, *, admin: bool = False, db) -> int:
    """Insert a new account and return its id."""
    email = normalize_email(email)
    errors: dict[str, str] = {}
    _check_email(email, errors, db=db)
    _check_new_password(password, errors)
    if errors:
        raise ValidationError(errors)

    now = store.now_iso()
    try:
        cur = db.execute(
            """INSERT INTO account (email, password_hash, admin, created_at, updated_at)
                    VALUES (?,?,?,?,?)""",
            (email, hash_password(password), int(admin), now, now),
        )
    except sqlite3.IntegrityError:
        db.rollback()
        raise ValidationError({"email": "has already been taken"}) from None
    db.commit()
    return cur.lastrowid


def update_account(
    account_id: int,
    *,
    email: str | None = None,
    admin: bool | None = None,
    password: str | None = None,
    db,
) -> None:
    """
    Change any of email / admin flag / password.

    The password length rule only applies when a new password is given;
    saving an email or the admin flag leaves the stored hash alone.
    """
    row = find_account(account_id, db=db)
    if row is None:
        raise LookupError(account_id)

    new_email = row["email"] if email is None else normalize_email(email)
    errors: dict[str, str] = {}
    if new_email != row["email"]:
        _check_email(new_email, errors, db=db, exclude_id=account_id)
    if password is not None:
        _check_new_password(password, errors)
    if errors:
        raise ValidationError(errors)

    pw_hash = row["password_hash"] if password is None else hash_password(password)
    is_admin = row["admin"] if admin is None else int(admin)
    db.execute(
        "UPDATE account SET email=?, password_hash=?, admin=?, updated_at=? WHERE id=?",
        (new_email, pw_hash, is_admin, store.now_iso(), account_id),
    )
    db.commit()


def authenticate(email: str, password: str, *, db, admin_only: bool = True) -> Principal:
    """
    Check a login attempt.

    Returns ``ANONYMOUS`` for *every* kind of failure – unknown email,
    wrong password, not an admin – so callers cannot tell them apart.
    Unknown emails still pay for one hash check.
    """
    row = find_account_by_email(email, db=db)
    if row is None:
        verify_password(password or "", _decoy_hash())
        return ANONYMOUS
    if not verify_password(password, row["password_hash"]):
        return ANONYMOUS
    if admin_only and not row["admin"]:
        return ANONYMOUS
    return Principal(row["id"])


def is_admin(principal: Principal, *, db) -> bool:
    row = find_account(principal.account_id, db=db)
    return bool(row and row["admin"])
