"""
models.py
Domain types: membership records, gateway charges, and form reference values.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any

# Membership price in baht; gateway amounts are in satang (x100)
MEMBERSHIP_PRICES = {
    "yearly": 20,
    "lifetime": 200,
}

MEMBERSHIP_LABELS = {
    "lifetime": "สมัครแบบตลอดชีพ 200 บาท",
    "yearly": "สมัครแบบรายปี 20 บาท/ปี",
}

PAYMENT_METHODS = {
    "cash": "ชำระเป็นเงินสด",
    "promptpay": "พร้อมเพย์ (QR Code)",
}

MEMBER_STATUSES = ("pending", "approved", "rejected")

STATUS_LABELS = {
    "pending": "รอดำเนินการ",
    "approved": "อนุมัติ",
    "rejected": "ปฏิเสธ",
}

OTHER = "อื่นๆ"
TITLES = ("นาย", "นาง", "นางสาว", OTHER)
RELIGIONS = ("พุทธ", "อิสลาม", "คริสต์", OTHER)
NATIONALITIES = (
    "สัญชาติไทยโดยกำเนิด",
    "สัญชาติไทยโดยการแปลงสัญชาติซึ่งได้สัญชาติมาแล้วไม่น้อยกว่า 5 ปี",
)

CHARGE_PENDING = "pending"
CHARGE_SUCCESSFUL = "successful"
CHARGE_FAILED = "failed"
CHARGE_EXPIRED = "expired"
TERMINAL_CHARGE_STATUSES = frozenset({CHARGE_SUCCESSFUL, CHARGE_FAILED, CHARGE_EXPIRED})


def amount_in_satang(membership_type: str) -> int:
    return MEMBERSHIP_PRICES[membership_type] * 100


@dataclass(frozen=True)
class Charge:
    id: str
    amount: int
    currency: str
    status: str
    qr_image_url: str | None = None
    description: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CHARGE_STATUSES

    @classmethod
    def from_gateway(cls, payload: dict[str, Any]) -> "Charge":
        """
        Build from an Omise charge object. The QR image sits at
        source.scannable_code.image.download_uri for PromptPay sources.
        """
        source = payload.get("source") or {}
        scannable = source.get("scannable_code") or {}
        image = scannable.get("image") or {}
        return cls(
            id=str(payload.get("id") or ""),
            amount=int(payload.get("amount") or 0),
            currency=str(payload.get("currency") or "").upper(),
            status=str(payload.get("status") or CHARGE_PENDING),
            qr_image_url=image.get("download_uri"),
            description=payload.get("description"),
        )


@dataclass(frozen=True)
class MembershipRecord:
    title: str
    first_name: str
    last_name: str
    religion: str
    nationality: str
    id_card: str
    card_issue_date: str
    card_expiry_date: str
    birth_date: str
    house_number: str
    province: str
    district: str
    sub_district: str
    postal_code: str
    phone: str
    membership_type: str  # 'yearly' or 'lifetime'
    payment_method: str  # 'cash' or 'promptpay'
    title_other: str = ""
    religion_other: str = ""
    village: str = ""
    soi: str = ""
    road: str = ""
    moo: str = ""
    email: str = ""
    line_id: str = ""
    political_opinion: str = ""
    selfie_with_document_url: str = ""
    id_card_image_url: str = ""
    status: str = "pending"
    payment_status: str = ""
    charge_id: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def full_name(self) -> str:
        title = self.title_other if self.title == OTHER and self.title_other else self.title
        return f"{title}{self.first_name} {self.last_name}".strip()

    @property
    def amount(self) -> int:
        return MEMBERSHIP_PRICES[self.membership_type]

    def address_text(self) -> str:
        parts = [self.house_number]
        if self.village:
            parts.append(f"หมู่บ้าน{self.village}")
        if self.soi:
            parts.append(f"ซอย{self.soi}")
        if self.road:
            parts.append(f"ถนน{self.road}")
        if self.moo:
            parts.append(f"หมู่{self.moo}")
        parts.append(f"ตำบล{self.sub_district} อำเภอ{self.district} จังหวัด{self.province} {self.postal_code}")
        return " ".join(p for p in parts if p)

    def to_row(self) -> dict[str, Any]:
        return asdict(self)

    def with_changes(self, **changes: Any) -> "MembershipRecord":
        return replace(self, **changes)

    @classmethod
    def from_row(cls, row: Any) -> "MembershipRecord":
        data = dict(row)
        names = {f.name for f in fields(cls)}
        return cls(**{k: ("" if v is None else v) for k, v in data.items() if k in names})


@dataclass(frozen=True)
class Member:
    """A stored membership record together with its generated key."""

    id: str
    record: MembershipRecord
