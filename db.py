"""
db.py
SQLite access for the members collection, admin accounts and app settings.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

MEMBER_COLUMNS = (
    "title",
    "title_other",
    "first_name",
    "last_name",
    "religion",
    "religion_other",
    "nationality",
    "id_card",
    "card_issue_date",
    "card_expiry_date",
    "birth_date",
    "house_number",
    "village",
    "soi",
    "road",
    "moo",
    "province",
    "district",
    "sub_district",
    "postal_code",
    "phone",
    "email",
    "line_id",
    "political_opinion",
    "membership_type",
    "payment_method",
    "selfie_with_document_url",
    "id_card_image_url",
    "status",
    "payment_status",
    "charge_id",
    "created_at",
    "updated_at",
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Database:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = ()) -> int:
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.rowcount

    def fetch_one(self, sql: str, params: tuple = ()):
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.fetchone()

    def fetch_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.fetchall()

    def _create_tables(self) -> None:
        self.execute(
            """
            CREATE TABLE IF NOT EXISTS admin_users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )

        text_columns = ",\n".join(
            f"{name} TEXT NOT NULL DEFAULT ''"
            for name in MEMBER_COLUMNS
            if name not in ("membership_type", "payment_method", "status")
        )
        self.execute(
            f"""
            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                membership_type TEXT NOT NULL CHECK(membership_type IN ('yearly','lifetime')),
                payment_method TEXT NOT NULL CHECK(payment_method IN ('cash','promptpay')),
                status TEXT NOT NULL CHECK(status IN ('pending','approved','rejected')),
                {text_columns}
            )
            """
        )

        # key/value flags, e.g. force_password_change
        self.execute(
            """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        row = self.fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
        if row:
            return str(row["value"])
        return default

    def set_setting(self, key: str, value: str) -> None:
        self.execute(
            """
            INSERT INTO app_settings(key, value) VALUES(?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
            (key, value),
        )

    def init(self, default_admin: str, default_admin_hash: str) -> None:
        """
        Create the tables, then seed the default admin on an empty admin_users
        table and flag its password for change at first login. Safe to call on
        every start.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._create_tables()

        admin = self.fetch_one("SELECT id FROM admin_users LIMIT 1")
        if not admin:
            self.execute(
                "INSERT INTO admin_users(username, password_hash, created_at) VALUES(?,?,?)",
                (default_admin.strip().lower(), default_admin_hash, utc_now_iso()),
            )
            self.set_setting("force_password_change", "1")
        elif self.get_setting("force_password_change") is None:
            self.set_setting("force_password_change", "0")

    def is_force_password_change(self) -> bool:
        return self.get_setting("force_password_change") == "1"

    def clear_force_password_change(self) -> None:
        self.set_setting("force_password_change", "0")
