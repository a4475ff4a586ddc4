from __future__ import annotations

import base64
import io
from datetime import date, datetime

import pytest
from PIL import Image

import utils
from models import Charge, Member
from tests.conftest import make_record, png_bytes

TODAY = date(2025, 6, 1)


def _form(**overrides):
    form = make_record().to_row()
    form.update(overrides)
    return form


def test_valid_form_has_no_errors():
    assert utils.validate_membership(_form(), today=TODAY) == {}


@pytest.mark.parametrize(
    "field, value",
    [
        ("id_card", "12345"),
        ("id_card", "110370001234X"),
        ("phone", "12345"),
        ("phone", "+6681234"),
        ("email", "not-an-email"),
        ("first_name", ""),
        ("house_number", "  "),
        ("selfie_with_document_url", ""),
        ("membership_type", "monthly"),
        ("payment_method", "card"),
        ("birth_date", "20/05/1990"),
    ],
)
def test_field_errors(field, value):
    errors = utils.validate_membership(_form(**{field: value}), today=TODAY)
    assert field in errors


def test_optional_fields_may_be_blank():
    errors = utils.validate_membership(_form(email="", last_name="", line_id="", soi=""), today=TODAY)
    assert errors == {}


def test_phone_formats():
    assert utils.validate_membership(_form(phone="+66812345678"), today=TODAY) == {}
    assert utils.validate_membership(_form(phone="021234567"), today=TODAY) == {}


def test_other_title_and_religion_need_detail():
    errors = utils.validate_membership(_form(title="อื่นๆ", religion="อื่นๆ"), today=TODAY)
    assert set(errors) == {"title_other", "religion_other"}

    ok = _form(title="อื่นๆ", title_other="ดร.", religion="อื่นๆ", religion_other="ซิกข์")
    assert utils.validate_membership(ok, today=TODAY) == {}


def test_card_dates():
    errors = utils.validate_membership(_form(card_issue_date="2024-01-01", card_expiry_date="2023-01-01"), today=TODAY)
    assert errors["card_expiry_date"] == "วันหมดอายุต้องมากกว่าวันที่ออกบัตร"

    expired = _form(card_issue_date="2015-01-01", card_expiry_date="2024-01-01")
    assert "card_expiry_date" in utils.validate_membership(expired, today=TODAY)
    assert utils.validate_membership(expired, today=TODAY, allow_expired_card=True) == {}


def test_minimum_age():
    assert "birth_date" in utils.validate_membership(_form(birth_date="2007-06-02"), today=TODAY)
    assert utils.validate_membership(_form(birth_date="2007-06-01"), today=TODAY) == {}


def test_years_between():
    assert utils.years_between(date(2000, 2, 29), date(2018, 2, 28)) == 17
    assert utils.years_between(date(2000, 2, 29), date(2018, 3, 1)) == 18


def test_image_to_data_uri_reencodes_as_jpeg():
    uri = utils.image_to_data_uri(png_bytes((100, 50), "red"), "image/png", max_bytes=1024 * 1024)

    assert uri.startswith("data:image/jpeg;base64,")
    with Image.open(io.BytesIO(base64.b64decode(uri.split(",", 1)[1]))) as img:
        assert img.format == "JPEG"
        assert img.size == (100, 50)


def test_image_crop_keeps_centre():
    uri = utils.image_to_data_uri(png_bytes((100, 50)), "image/png", max_bytes=1024 * 1024, crop=True)
    with Image.open(io.BytesIO(utils.data_uri_bytes(uri))) as img:
        assert img.size == (90, 45)


@pytest.mark.parametrize(
    "raw, content_type, max_bytes",
    [
        (png_bytes(), "application/pdf", 1024 * 1024),
        (png_bytes(), "image/png", 10),
        (b"garbage", "image/png", 1024 * 1024),
    ],
)
def test_image_upload_errors(raw, content_type, max_bytes):
    with pytest.raises(utils.ImageUploadError):
        utils.image_to_data_uri(raw, content_type, max_bytes=max_bytes)


def test_decompression_bomb_is_an_upload_error(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(utils.ImageUploadError):
        utils.image_to_data_uri(png_bytes((40, 40)), "image/png", max_bytes=1024 * 1024)


def test_exif_orientation_is_applied():
    exif = Image.Exif()
    exif[0x0112] = 6  # rotated 90 degrees clockwise
    out = io.BytesIO()
    Image.new("RGB", (100, 50), "white").save(out, format="JPEG", exif=exif)

    uri = utils.image_to_data_uri(out.getvalue(), "image/jpeg", max_bytes=1024 * 1024)
    with Image.open(io.BytesIO(utils.data_uri_bytes(uri))) as img:
        assert img.size == (50, 100)


def test_data_uri_bytes():
    assert utils.data_uri_bytes("data:image/jpeg;base64,aGVsbG8=") == b"hello"
    assert utils.data_uri_bytes("https://example.com/a.jpg") is None
    assert utils.data_uri_bytes("") is None


def test_members_csv():
    members = [
        Member("m1", make_record(status="approved", created_at="2025-03-04T10:00:00+00:00")),
        Member("m2", make_record(first_name="สมหญิง", title="นางสาว", membership_type="lifetime", payment_method="cash")),
    ]

    data = utils.members_to_csv_bytes(members)

    assert data.startswith(b"\xef\xbb\xbf")
    lines = data.decode("utf-8-sig").splitlines()
    assert lines[0].split(",") == utils.CSV_HEADERS
    assert "การชำระเงิน" not in lines[0]
    assert len(lines[1].split(",")) == len(utils.CSV_HEADERS)
    assert "นายสมชาย ใจดี" in lines[1]
    assert "อนุมัติ" in lines[1]
    assert "04/03/2025" in lines[1]
    assert "ตลอดชีพ" in lines[2]
    assert len(lines) == 3


def test_receipt_escapes_member_data():
    rec = make_record(first_name="<script>", membership_type="lifetime")
    charge = Charge(id="chrg_1", amount=20000, currency="THB", status="successful")
    page = utils.receipt_html(rec, charge, "Test Party", issued_at=datetime(2025, 1, 2, 3, 4))

    assert "&lt;script&gt;" in page
    assert "<script>" not in page
    assert "200.00 บาท" in page
    assert "chrg_1" in page
    assert "02/01/2025 03:04" in page


def test_format_thai_date():
    assert utils.format_thai_date("2025-03-04") == "04/03/2025"
    assert utils.format_thai_date("2025-03-04T10:00:00+00:00") == "04/03/2025"
    assert utils.format_thai_date("") == ""
    assert utils.format_thai_date("garbage") == "garbage"


def test_record_from_form_keeps_system_fields():
    existing = make_record(status="approved", charge_id="chrg_1", created_at="2025-01-01T00:00:00+00:00")

    updated = utils.record_from_form({"phone": " 0899999999 ", "first_name": "ใหม่"}, existing=existing)

    assert updated.phone == "0899999999"
    assert updated.first_name == "ใหม่"
    assert updated.status == "approved"
    assert updated.charge_id == "chrg_1"
    assert updated.created_at == existing.created_at


def test_record_from_new_form_is_pending():
    form = _form()
    form.pop("status")
    form["province_id"] = 1

    rec = utils.record_from_form(form)
    assert rec.status == "pending"
    assert rec.line_id == ""
