"""
auth.py
Admin accounts: bcrypt password hashes, email login, password change.
"""

from __future__ import annotations

import logging

import bcrypt

from db import Database

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


def _to_bcrypt_secret(password: str) -> bytes:
    # bcrypt ignores anything past 72 bytes and newer releases raise on it
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash for the admin_users.password_hash column (UTF-8 text)."""
    return bcrypt.hashpw(_to_bcrypt_secret(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def normalize_username(username: str) -> str:
    return username.strip().lower()


def get_admin(db: Database, username: str):
    return db.fetch_one("SELECT * FROM admin_users WHERE username = ?", (normalize_username(username),))


def login(db: Database, username: str, password: str) -> bool:
    if not username or not password:
        return False
    admin = get_admin(db, username)
    if admin is None or not verify_password(password, admin["password_hash"]):
        logger.warning("Failed admin login for %s", normalize_username(username))
        return False
    logger.info("Admin %s logged in", admin["username"])
    return True


def change_password(db: Database, username: str, new_password: str) -> None:
    """Replace the admin's password. Also lifts the first-login password change requirement."""
    db.execute(
        "UPDATE admin_users SET password_hash = ? WHERE username = ?",
        (hash_password(new_password), normalize_username(username)),
    )
    db.clear_force_password_change()
    logger.info("Password changed for %s", normalize_username(username))
