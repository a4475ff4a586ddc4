"""
Shared fixtures: temporary database, fake gateway, fake clock.
"""

from __future__ import annotations

import io

import pytest
from PIL import Image

import auth
from db import Database
from members import MemberStore
from models import MembershipRecord
from payment import GatewayError


class FakeGateway:
    """
    In-memory stand-in for the Omise charges API.

    `statuses` is consumed one entry per retrieve_charge call; an Exception
    entry is raised instead of returned. When exhausted, the charge stays pending.
    """

    def __init__(self, statuses=None, with_qr: bool = True):
        self.statuses = list(statuses or [])
        self.with_qr = with_qr
        self.charges: dict[str, dict] = {}
        self.created: list[dict] = []
        self.retrieved: list[str] = []
        self.fail_create = False

    def create_charge(self, amount, currency, description, source):
        if self.fail_create:
            raise GatewayError("gateway down", 503)
        charge_id = f"chrg_test_{len(self.created) + 1:04d}"
        payload = {
            "object": "charge",
            "id": charge_id,
            "amount": amount,
            "currency": currency.lower(),
            "description": description,
            "status": "pending",
            "source": {"type": source["type"]},
        }
        if self.with_qr:
            payload["source"]["scannable_code"] = {
                "image": {"download_uri": f"https://api.omise.co/charges/{charge_id}/documents/qr.svg"}
            }
        self.charges[charge_id] = payload
        self.created.append(payload)
        return dict(payload)

    def retrieve_charge(self, charge_id):
        self.retrieved.append(charge_id)
        if charge_id not in self.charges:
            raise GatewayError(f"charge {charge_id} not found", 404)
        if self.statuses:
            step = self.statuses.pop(0)
            if isinstance(step, Exception):
                raise step
            self.charges[charge_id]["status"] = step
        return dict(self.charges[charge_id])


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def make_record(**overrides) -> MembershipRecord:
    values = dict(
        title="นาย",
        first_name="สมชาย",
        last_name="ใจดี",
        religion="พุทธ",
        nationality="สัญชาติไทยโดยกำเนิด",
        id_card="1103700012345",
        card_issue_date="2020-01-15",
        card_expiry_date="2029-01-14",
        birth_date="1990-05-20",
        house_number="12/8",
        province="กรุงเทพมหานคร",
        district="ปทุมวัน",
        sub_district="ลุมพินี",
        postal_code="10330",
        phone="0812345678",
        membership_type="yearly",
        payment_method="promptpay",
        email="somchai@example.com",
        selfie_with_document_url="data:image/jpeg;base64,AAAA",
        id_card_image_url="data:image/jpeg;base64,BBBB",
    )
    values.update(overrides)
    return MembershipRecord(**values)


def png_bytes(size=(40, 40), color="black") -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "members.db")
    database.init("admin@example.com", auth.hash_password("admin123", rounds=4))
    return database


@pytest.fixture
def store(db):
    return MemberStore(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def record():
    return make_record()
