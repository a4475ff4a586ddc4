"""
utils.py
Validation, dates, document images, exports.
"""

from __future__ import annotations

import base64
import html
import io
import re
from datetime import date, datetime
from typing import Iterable, Mapping

import pandas as pd
from PIL import Image, ImageOps, UnidentifiedImageError

from models import (
    MEMBERSHIP_PRICES,
    OTHER,
    PAYMENT_METHODS,
    STATUS_LABELS,
    Charge,
    Member,
    MembershipRecord,
)

ID_CARD_RE = re.compile(r"^\d{13}$")
PHONE_RE = re.compile(r"^(\+66|0)[0-9]{8,9}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

REQUIRED_FIELDS = {
    "title": "กรุณาเลือกคำนำหน้าชื่อ",
    "first_name": "กรุณากรอกชื่อ",
    "religion": "กรุณาเลือกศาสนา",
    "nationality": "กรุณาเลือกสัญชาติ",
    "card_issue_date": "กรุณาเลือกวันที่ออกบัตร",
    "card_expiry_date": "กรุณาเลือกวันหมดอายุ",
    "birth_date": "กรุณาเลือกวันเกิด",
    "house_number": "กรุณากรอกเลขที่",
    "province": "กรุณาเลือกจังหวัด",
    "district": "กรุณาเลือกเขต/อำเภอ",
    "sub_district": "กรุณาเลือกแขวง/ตำบล",
    "postal_code": "รหัสไปรษณีย์จะถูกกรอกอัตโนมัติ",
    "selfie_with_document_url": "กรุณาอัปโหลดรูปถ่ายตนเองพร้อมเอกสาร",
    "id_card_image_url": "กรุณาอัปโหลดรูปบัตรประชาชน",
}


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def years_between(start: date, end: date) -> int:
    """Whole years from start to end (birthday not yet reached counts as one less)."""
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


def format_thai_date(value: str) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).strftime("%d/%m/%Y")
    except ValueError:
        return value


def _parse_date_field(form: Mapping[str, str], name: str, errors: dict[str, str]) -> date | None:
    raw = (form.get(name) or "").strip()
    if not raw:
        return None
    try:
        return parse_iso(raw)
    except ValueError:
        errors[name] = "รูปแบบวันที่ไม่ถูกต้อง (YYYY-MM-DD)"
        return None


def validate_membership(
    form: Mapping[str, str],
    today: date | None = None,
    min_age: int = 18,
    allow_expired_card: bool = False,
) -> dict[str, str]:
    """
    Field-level validation of the registration form. Returns {field: message};
    an empty dict means the form can be submitted.
    """
    today = today or date.today()
    errors: dict[str, str] = {}

    for name, message in REQUIRED_FIELDS.items():
        if not str(form.get(name) or "").strip():
            errors[name] = message

    if not ID_CARD_RE.match(str(form.get("id_card") or "")):
        errors["id_card"] = "เลขประจำตัวประชาชนต้องเป็นตัวเลข 13 หลัก"
    if not PHONE_RE.match(str(form.get("phone") or "")):
        errors["phone"] = "กรุณากรอกเบอร์โทรศัพท์ที่ถูกต้อง"
    email = str(form.get("email") or "").strip()
    if email and not EMAIL_RE.match(email):
        errors["email"] = "กรุณากรอกอีเมลที่ถูกต้อง"

    if form.get("title") == OTHER and not str(form.get("title_other") or "").strip():
        errors["title_other"] = "กรุณาระบุคำนำหน้าชื่ออื่นๆ"
    if form.get("religion") == OTHER and not str(form.get("religion_other") or "").strip():
        errors["religion_other"] = "กรุณาระบุศาสนาอื่นๆ"

    if form.get("membership_type") not in MEMBERSHIP_PRICES:
        errors["membership_type"] = "กรุณาเลือกประเภทสมาชิก"
    if form.get("payment_method") not in PAYMENT_METHODS:
        errors["payment_method"] = "กรุณาเลือกรูปแบบการชำระเงิน"

    issued = _parse_date_field(form, "card_issue_date", errors)
    expires = _parse_date_field(form, "card_expiry_date", errors)
    born = _parse_date_field(form, "birth_date", errors)

    if issued and expires and expires <= issued:
        errors["card_expiry_date"] = "วันหมดอายุต้องมากกว่าวันที่ออกบัตร"
    elif expires and expires < today and not allow_expired_card:
        errors["card_expiry_date"] = "บัตรประชาชนหมดอายุแล้ว"
    if born and years_between(born, today) < min_age:
        errors["birth_date"] = f"อายุต้องไม่ต่ำกว่า {min_age} ปีบริบูรณ์"

    return errors


class ImageUploadError(ValueError):
    pass


def image_to_data_uri(raw: bytes, content_type: str, max_bytes: int, crop: bool = False) -> str:
    """
    Validate an uploaded document photo and re-encode it as a JPEG data URI.
    crop=True keeps the centred 90% of the frame (the ID-card capture guide).
    """
    if not (content_type or "").startswith("image/"):
        raise ImageUploadError("กรุณาเลือกไฟล์รูปภาพเท่านั้น")
    if len(raw) > max_bytes:
        raise ImageUploadError(f"ไฟล์รูปภาพต้องมีขนาดไม่เกิน {max_bytes // (1024 * 1024)}MB")

    try:
        with Image.open(io.BytesIO(raw)) as img:
            # phone cameras record rotation in EXIF instead of the pixels
            img = ImageOps.exif_transpose(img).convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ImageUploadError("ไม่สามารถอ่านไฟล์รูปภาพได้") from exc

    if crop:
        w, h = img.size
        cw, ch = int(w * 0.9), int(h * 0.9)
        left, top = (w - cw) // 2, (h - ch) // 2
        img = img.crop((left, top, left + cw, top + ch))

    out = io.BytesIO()
    img.save(out, format="JPEG", quality=90)
    return "data:image/jpeg;base64," + base64.b64encode(out.getvalue()).decode("ascii")


def data_uri_bytes(uri: str) -> bytes | None:
    if not uri or not uri.startswith("data:") or "," not in uri:
        return None
    return base64.b64decode(uri.split(",", 1)[1])


CSV_HEADERS = [
    "ชื่อ-นามสกุล",
    "เลขบัตรประชาชน",
    "เบอร์โทรศัพท์",
    "อีเมล",
    "ที่อยู่",
    "ประเภทสมาชิก",
    "สถานะ",
    "วันที่สมัคร",
]


def membership_type_label(membership_type: str) -> str:
    return "รายปี" if membership_type == "yearly" else "ตลอดชีพ"


def members_to_dataframe(members: Iterable[Member]) -> pd.DataFrame:
    rows = []
    for m in members:
        r = m.record
        rows.append(
            [
                r.full_name,
                r.id_card,
                r.phone,
                r.email,
                f"{r.house_number} {r.sub_district} {r.district} {r.province}",
                membership_type_label(r.membership_type),
                STATUS_LABELS.get(r.status, r.status),
                format_thai_date(r.created_at),
            ]
        )
    return pd.DataFrame(rows, columns=CSV_HEADERS)


def members_to_csv_bytes(members: Iterable[Member]) -> bytes:
    # BOM so spreadsheet apps detect UTF-8 Thai text
    return members_to_dataframe(members).to_csv(index=False).encode("utf-8-sig")


def receipt_html(record: MembershipRecord, charge: Charge, party_name: str, issued_at: datetime | None = None) -> str:
    """Printable receipt for a paid charge. Amount and reference come from the charge itself."""
    issued_at = issued_at or datetime.now()
    e = html.escape
    tier = "สมาชิกรายปี" if record.membership_type == "yearly" else "สมาชิกตลอดชีพ"
    return f"""<!DOCTYPE html>
<html lang="th">
<head>
  <meta charset="UTF-8">
  <title>ใบเสร็จรับเงิน - {e(party_name)}</title>
  <style>
    body {{ font-family: 'Sarabun', sans-serif; margin: 40px; }}
    .header {{ text-align: center; margin-bottom: 30px; }}
    .row {{ display: flex; justify-content: space-between; margin: 8px 0; }}
    .amount {{ font-size: 18px; font-weight: bold; background: #f0f0f0; padding: 10px; }}
    .footer {{ margin-top: 30px; text-align: center; font-size: 12px; color: #666; }}
  </style>
</head>
<body onload="window.print()">
  <div class="header">
    <h2>{e(party_name)}</h2>
    <div>ใบเสร็จรับเงินค่าสมาชิก</div>
  </div>
  <div class="row"><span>ชื่อ-นามสกุล:</span><span>{e(record.full_name)}</span></div>
  <div class="row"><span>เลขประจำตัวประชาชน:</span><span>{e(record.id_card)}</span></div>
  <div class="row"><span>ประเภทสมาชิก:</span><span>{tier}</span></div>
  <div class="row"><span>รหัสการชำระเงิน:</span><span>{e(charge.id)}</span></div>
  <div class="amount"><div class="row"><span>จำนวนเงิน:</span><span>{charge.amount / 100:,.2f} บาท</span></div></div>
  <div class="footer">
    <p>{e(party_name)} - ระบบสมัครสมาชิกออนไลน์</p>
    <p>ออกใบเสร็จเมื่อ: {issued_at.strftime("%d/%m/%Y %H:%M")}</p>
  </div>
</body>
</html>
"""


def record_from_form(form: Mapping[str, str], existing: MembershipRecord | None = None) -> MembershipRecord:
    """Build a MembershipRecord from validated form values, keeping system fields of an existing record."""
    base = existing.to_row() if existing else {"status": "pending"}
    for key, value in form.items():
        base[key] = value.strip() if isinstance(value, str) else value
    return MembershipRecord.from_row(base)
