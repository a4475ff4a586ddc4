"""
members.py
The `members` collection: push/get/list/update/status changes on top of db.Database.
"""

from __future__ import annotations

import uuid

from db import MEMBER_COLUMNS, Database, utc_now_iso
from models import MEMBER_STATUSES, Member, MembershipRecord


def new_member_id() -> str:
    return uuid.uuid4().hex


class MemberStore:
    def __init__(self, db: Database):
        self.db = db

    def push(self, record: MembershipRecord) -> str:
        """Insert a record under a freshly generated key and return the key."""
        now = utc_now_iso()
        row = record.with_changes(
            created_at=record.created_at or now,
            updated_at=now,
        ).to_row()
        member_id = new_member_id()
        cols = ", ".join(("id",) + MEMBER_COLUMNS)
        marks = ", ".join("?" for _ in range(len(MEMBER_COLUMNS) + 1))
        self.db.execute(
            f"INSERT INTO members({cols}) VALUES({marks})",
            (member_id, *(row[c] for c in MEMBER_COLUMNS)),
        )
        return member_id

    def get(self, member_id: str) -> Member | None:
        row = self.db.fetch_one("SELECT * FROM members WHERE id = ?", (member_id,))
        if not row:
            return None
        return Member(id=row["id"], record=MembershipRecord.from_row(row))

    def list(self, search: str = "", status: str = "all") -> list[Member]:
        sql = "SELECT * FROM members WHERE 1=1"
        params: list[str] = []

        term = search.strip()
        if term:
            like = f"%{term.lower()}%"
            sql += " AND (lower(first_name) LIKE ? OR lower(last_name) LIKE ? OR id_card LIKE ? OR phone LIKE ?)"
            params.extend([like, like, f"%{term}%", f"%{term}%"])

        if status in MEMBER_STATUSES:
            sql += " AND status = ?"
            params.append(status)

        sql += " ORDER BY created_at DESC"
        return [Member(id=r["id"], record=MembershipRecord.from_row(r)) for r in self.db.fetch_all(sql, tuple(params))]

    def update(self, member_id: str, record: MembershipRecord) -> bool:
        row = record.with_changes(updated_at=utc_now_iso()).to_row()
        assignments = ", ".join(f"{c} = ?" for c in MEMBER_COLUMNS if c != "created_at")
        values = tuple(row[c] for c in MEMBER_COLUMNS if c != "created_at")
        return self.db.execute(f"UPDATE members SET {assignments} WHERE id = ?", (*values, member_id)) == 1

    def set_status(self, member_id: str, status: str) -> bool:
        if status not in MEMBER_STATUSES:
            raise ValueError(f"unknown member status: {status!r}")
        return (
            self.db.execute(
                "UPDATE members SET status = ?, updated_at = ? WHERE id = ?",
                (status, utc_now_iso(), member_id),
            )
            == 1
        )

    def mark_payment_completed(self, member_id: str, charge_id: str) -> bool:
        return (
            self.db.execute(
                "UPDATE members SET payment_status = 'completed', charge_id = ?, updated_at = ? WHERE id = ?",
                (charge_id, utc_now_iso(), member_id),
            )
            == 1
        )

    def delete(self, member_id: str) -> bool:
        return self.db.execute("DELETE FROM members WHERE id = ?", (member_id,)) == 1

    def count_by_status(self) -> dict[str, int]:
        counts = {s: 0 for s in MEMBER_STATUSES}
        for row in self.db.fetch_all("SELECT status, COUNT(*) AS c FROM members GROUP BY status"):
            counts[row["status"]] = int(row["c"])
        return counts
