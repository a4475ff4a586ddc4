"""
app.py
Streamlit party membership registration + admin panel.
Run: streamlit run app.py   (payment proxy: python server.py)
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime

import pandas as pd
import requests
import streamlit as st

import auth
import config
import utils
from address import AddressDataset, districts_for, load_dataset, postal_code_for, sub_districts_for
from db import Database
from members import MemberStore
from models import (
    CHARGE_SUCCESSFUL,
    MEMBER_STATUSES,
    MEMBERSHIP_LABELS,
    NATIONALITIES,
    OTHER,
    PAYMENT_METHODS,
    RELIGIONS,
    STATUS_LABELS,
    TITLES,
    Charge,
    Member,
    MembershipRecord,
)
from payment import (
    POLL_FAILED,
    POLL_SUCCESS,
    GatewayError,
    PaymentCreationError,
    PaymentSession,
    ProxyGateway,
    register,
    start_membership_payment,
)
from qr import ProxyFetcher, QrDownload, QrFetchError, export_qr, rasterize

st.set_page_config(page_title=f"สมัครสมาชิก {config.PARTY_NAME}", layout="wide")
config.configure_logging()
logger = logging.getLogger("app")

STEP_FIELDS = {
    1: (
        "title", "title_other", "first_name", "last_name", "religion", "religion_other",
        "nationality", "id_card", "card_issue_date", "card_expiry_date", "birth_date",
    ),
    2: (
        "house_number", "village", "soi", "road", "moo", "province", "district", "sub_district",
        "postal_code", "phone", "email", "line_id", "political_opinion",
    ),
    3: ("selfie_with_document_url", "id_card_image_url", "membership_type", "payment_method"),
}
STEP_TITLES = {1: "ข้อมูลส่วนตัวและบัตรประชาชน", 2: "ที่อยู่และข้อมูลติดต่อ", 3: "เอกสารและประเภทสมาชิก"}


@st.cache_resource
def get_db() -> Database:
    db = Database(config.DB_FILE)
    db.init(config.DEFAULT_ADMIN_USERNAME, auth.hash_password(config.DEFAULT_ADMIN_PASSWORD))
    return db


@st.cache_resource
def get_gateway() -> ProxyGateway:
    return ProxyGateway(config.PROXY_BASE_URL, timeout=config.GATEWAY_TIMEOUT_SECONDS)


@st.cache_resource
def get_address_dataset() -> AddressDataset:
    try:
        return load_dataset(config.ADDRESS_CACHE_DIR, config.ADDRESS_DATA_BASE_URL)
    except (requests.RequestException, OSError, KeyError, ValueError) as exc:
        logger.error("Loading address data failed: %s", exc)
        return AddressDataset((), (), ())


def get_store() -> MemberStore:
    return MemberStore(get_db())


def init_state():
    defaults = {
        "logged_in": False,
        "username": None,
        "form": {"nationality": NATIONALITIES[0], "membership_type": "yearly", "payment_method": "promptpay"},
        "step": 1,
        "payment": None,
        "registered_cash": None,
        "selected_member_id": None,
        "edit_member_id": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def show_errors(errors: dict[str, str], fields=None):
    for name, message in errors.items():
        if fields is None or name in fields:
            st.error(message)


# ---------- Registration form ----------

def _text(form: dict, name: str, label: str, **kwargs):
    form[name] = st.text_input(label, value=form.get(name, ""), key=f"reg_{name}", **kwargs)


def _choice(form: dict, name: str, label: str, options, format_func=str):
    options = list(options)
    current = form.get(name)
    index = options.index(current) if current in options else None
    value = st.selectbox(label, options, index=index, format_func=format_func, key=f"reg_{name}",
                         placeholder="กรุณาเลือก")
    form[name] = value or ""


def _date(form: dict, name: str, label: str, min_value: date | None = None, max_value: date | None = None):
    current = utils.parse_iso(form[name]) if form.get(name) else None
    value = st.date_input(label, value=current, min_value=min_value or date(1900, 1, 1),
                          max_value=max_value or date(2100, 12, 31), format="DD/MM/YYYY", key=f"reg_{name}")
    form[name] = value.isoformat() if value else ""


def personal_step(form: dict):
    c1, c2, c3 = st.columns(3)
    with c1:
        _choice(form, "title", "คำนำหน้าชื่อ *", TITLES)
        if form["title"] == OTHER:
            _text(form, "title_other", "ระบุคำนำหน้าชื่อ *")
    with c2:
        _text(form, "first_name", "ชื่อ *")
    with c3:
        _text(form, "last_name", "นามสกุล")

    c1, c2 = st.columns(2)
    with c1:
        _choice(form, "religion", "ศาสนา *", RELIGIONS)
        if form["religion"] == OTHER:
            _text(form, "religion_other", "ระบุศาสนา *")
    with c2:
        _choice(form, "nationality", "สัญชาติ *", NATIONALITIES)

    st.subheader("ข้อมูลบัตรประชาชน")
    _text(form, "id_card", "เลขประจำตัวประชาชน *", max_chars=13)
    c1, c2, c3 = st.columns(3)
    with c1:
        _date(form, "card_issue_date", "วันที่ออกบัตร *", max_value=date.today())
    with c2:
        _date(form, "card_expiry_date", "วันหมดอายุ *")
    with c3:
        _date(form, "birth_date", "วันเกิด *", max_value=date.today())


def address_step(form: dict):
    dataset = get_address_dataset()
    if not dataset.provinces:
        st.warning("ไม่สามารถโหลดข้อมูลจังหวัดได้ กรุณากรอกที่อยู่เอง")

    c1, c2, c3 = st.columns(3)
    with c1:
        _text(form, "house_number", "บ้านเลขที่ *")
    with c2:
        _text(form, "moo", "หมู่")
    with c3:
        _text(form, "village", "หมู่บ้าน/อาคาร")
    c1, c2 = st.columns(2)
    with c1:
        _text(form, "soi", "ซอย")
    with c2:
        _text(form, "road", "ถนน")

    if dataset.provinces:
        provinces = {p.id: p for p in dataset.provinces}
        c1, c2, c3, c4 = st.columns(4)
        with c1:
            province_id = st.selectbox(
                "จังหวัด *", list(provinces), index=_index_of(list(provinces), form.get("province_id")),
                format_func=lambda i: provinces[i].name_th, placeholder="กรุณาเลือก", key="reg_province_id",
            )
        if province_id != form.get("province_id"):
            # province changed: reset everything below it
            form.update(province_id=province_id, district_id=None, sub_district_id=None,
                        district="", sub_district="", postal_code="")
        form["province"] = provinces[province_id].name_th if province_id else ""

        districts = {d.id: d for d in districts_for(dataset, province_id)}
        with c2:
            district_id = st.selectbox(
                "เขต/อำเภอ *", list(districts), index=_index_of(list(districts), form.get("district_id")),
                format_func=lambda i: districts[i].name_th, placeholder="กรุณาเลือก",
                disabled=not districts, key=f"reg_district_id_{province_id}",
            )
        if district_id != form.get("district_id"):
            form.update(district_id=district_id, sub_district_id=None, sub_district="", postal_code="")
        form["district"] = districts[district_id].name_th if district_id else ""

        subs = {s.id: s for s in sub_districts_for(dataset, district_id)}
        with c3:
            sub_id = st.selectbox(
                "แขวง/ตำบล *", list(subs), index=_index_of(list(subs), form.get("sub_district_id")),
                format_func=lambda i: subs[i].name_th, placeholder="กรุณาเลือก",
                disabled=not subs, key=f"reg_sub_district_id_{district_id}",
            )
        form["sub_district_id"] = sub_id
        form["sub_district"] = subs[sub_id].name_th if sub_id else ""
        form["postal_code"] = postal_code_for(dataset, sub_id)
        with c4:
            st.text_input("รหัสไปรษณีย์", value=form["postal_code"], disabled=True,
                          key=f"reg_postal_code_{sub_id}")
    else:
        c1, c2, c3, c4 = st.columns(4)
        with c1:
            _text(form, "province", "จังหวัด *")
        with c2:
            _text(form, "district", "เขต/อำเภอ *")
        with c3:
            _text(form, "sub_district", "แขวง/ตำบล *")
        with c4:
            _text(form, "postal_code", "รหัสไปรษณีย์ *", max_chars=5)

    st.subheader("ข้อมูลติดต่อ")
    c1, c2, c3 = st.columns(3)
    with c1:
        _text(form, "phone", "เบอร์โทรศัพท์ *", placeholder="0812345678")
    with c2:
        _text(form, "email", "อีเมล")
    with c3:
        _text(form, "line_id", "Line ID")
    form["political_opinion"] = st.text_area(
        "ความเห็นทางการเมือง", value=form.get("political_opinion", ""), key="reg_political_opinion"
    )


def _index_of(options: list, value):
    return options.index(value) if value in options else None


def _document_upload(form: dict, name: str, label: str, crop: bool):
    st.markdown(f"**{label} ***")
    use_camera = st.toggle("ถ่ายภาพด้วยกล้อง", key=f"cam_{name}")
    if use_camera:
        uploaded = st.camera_input(label, key=f"upload_cam_{name}", label_visibility="collapsed")
    else:
        uploaded = st.file_uploader(label, type=["jpg", "jpeg", "png", "webp"], key=f"upload_{name}",
                                    label_visibility="collapsed")
    if uploaded is not None:
        try:
            form[name] = utils.image_to_data_uri(uploaded.getvalue(), uploaded.type or "",
                                                 config.MAX_UPLOAD_BYTES, crop=crop)
        except utils.ImageUploadError as exc:
            st.error(str(exc))
    if form.get(name):
        st.image(utils.data_uri_bytes(form[name]), width=320)
        if st.button("ลบรูป", key=f"remove_{name}"):
            form[name] = ""
            st.rerun()


def documents_step(form: dict):
    c1, c2 = st.columns(2)
    with c1:
        _document_upload(form, "selfie_with_document_url", "รูปถ่ายตนเองพร้อมเอกสาร", crop=False)
    with c2:
        _document_upload(form, "id_card_image_url", "รูปบัตรประจำตัวประชาชน", crop=True)

    st.subheader("ประเภทสมาชิกและการชำระเงิน")
    types = list(MEMBERSHIP_LABELS)
    form["membership_type"] = st.radio(
        "ประเภทสมาชิก", types, index=_index_of(types, form.get("membership_type")) or 0,
        format_func=MEMBERSHIP_LABELS.get, key="reg_membership_type",
    )
    methods = list(PAYMENT_METHODS)
    form["payment_method"] = st.radio(
        "รูปแบบการชำระเงิน", methods, index=_index_of(methods, form.get("payment_method")) or 0,
        format_func=PAYMENT_METHODS.get, key="reg_payment_method",
    )


def registration_page():
    st.title(f"สมัครสมาชิก{config.PARTY_NAME}")

    if st.session_state.payment:
        payment_page()
        return
    if st.session_state.registered_cash:
        cash_success_screen()
        return

    form = st.session_state.form
    step = st.session_state.step
    st.progress(step / 3, text=f"ขั้นตอนที่ {step}/3: {STEP_TITLES[step]}")

    if step == 1:
        personal_step(form)
    elif step == 2:
        address_step(form)
    else:
        documents_step(form)

    errors = utils.validate_membership(form, min_age=config.MIN_MEMBER_AGE)
    step_errors = {k: v for k, v in errors.items() if k in STEP_FIELDS[step]}

    st.divider()
    c1, c2 = st.columns(2)
    with c1:
        if step > 1 and st.button("ย้อนกลับ"):
            st.session_state.step = step - 1
            st.rerun()
    with c2:
        if step < 3:
            if st.button("ถัดไป", type="primary"):
                if step_errors:
                    show_errors(step_errors)
                else:
                    st.session_state.step = step + 1
                    st.rerun()
        elif st.button("ยืนยันการสมัคร", type="primary"):
            if errors:
                show_errors(errors)
            else:
                submit_registration(form)


def submit_registration(form: dict):
    record = utils.record_from_form(form)
    try:
        result = register(
            get_store(),
            get_gateway(),
            record,
            config.PARTY_NAME,
            config.CURRENCY,
            interval=config.POLL_INTERVAL_SECONDS,
            timeout=config.POLL_TIMEOUT_SECONDS,
        )
    except sqlite3.Error:
        logger.exception("Saving cash registration failed")
        st.error("ไม่สามารถบันทึกข้อมูลได้ กรุณาลองใหม่อีกครั้ง")
        return
    except PaymentCreationError as exc:
        st.session_state.payment = {"record": record, "session": None, "qr_png": None, "error": str(exc)}
    else:
        if isinstance(result, PaymentSession):
            show_payment(result)
        else:
            st.session_state.registered_cash = record
    st.rerun()


def cash_success_screen():
    record: MembershipRecord = st.session_state.registered_cash
    st.success("สมัครสมาชิกสำเร็จ! ข้อมูลการสมัครสมาชิกได้ถูกบันทึกแล้ว")
    st.info(
        f"📍 ชำระเงินสดที่สำนักงาน{config.PARTY_NAME}\n\n"
        "🕒 เวลาทำการ: จันทร์-ศุกร์ 9:00-17:00 น.\n\n"
        f"💰 จำนวนเงิน: {record.amount} บาท"
    )
    if st.button("กลับหน้าหลัก", type="primary"):
        reset_registration()
        st.rerun()


def reset_registration():
    for key in list(st.session_state.keys()):
        if str(key).startswith(("reg_", "upload_", "cam_")):
            del st.session_state[key]
    st.session_state.form = {"nationality": NATIONALITIES[0], "membership_type": "yearly",
                             "payment_method": "promptpay"}
    st.session_state.step = 1
    st.session_state.payment = None
    st.session_state.registered_cash = None


# ---------- Payment ----------

def show_payment(session: PaymentSession):
    st.session_state.payment = {
        "record": session.record,
        "session": session,
        "qr_png": render_qr(session.charge),
        "error": None,
    }


def leave_payment(reason: str):
    payment = st.session_state.get("payment")
    if payment and payment.get("session"):
        payment["session"].cancel(reason)


def start_payment(record: MembershipRecord):
    """Retry: stop the previous attempt and create a brand-new charge."""
    leave_payment("retry")
    try:
        session = start_membership_payment(
            get_gateway(),
            get_store(),
            record,
            config.PARTY_NAME,
            config.CURRENCY,
            interval=config.POLL_INTERVAL_SECONDS,
            timeout=config.POLL_TIMEOUT_SECONDS,
        )
    except PaymentCreationError as exc:
        st.session_state.payment = {"record": record, "session": None, "qr_png": None, "error": str(exc)}
        return
    show_payment(session)


def render_qr(charge: Charge) -> bytes | None:
    """Fetch the QR once through the proxy so the page shows a PNG; None means show the URL directly."""
    try:
        content_type, data = ProxyFetcher(config.PROXY_BASE_URL)(charge.qr_image_url)
        return rasterize(content_type, data)
    except (QrFetchError, OSError, ValueError) as exc:
        logger.info("Rendering QR via proxy failed, falling back to URL: %s", exc)
        return None


@st.fragment(run_every=config.POLL_INTERVAL_SECONDS)
def poll_fragment():
    payment = st.session_state.payment
    session: PaymentSession | None = payment and payment.get("session")
    if session is None or session.poller.finished:
        return
    if session.poller.due():
        session.poller.tick()
    if session.poller.finished:
        st.rerun()
    st.caption("⏳ กำลังรอการชำระเงิน...")


def payment_page():
    payment = st.session_state.payment
    record: MembershipRecord = payment["record"]
    session: PaymentSession | None = payment["session"]

    tier = "รายปี" if record.membership_type == "yearly" else "ตลอดชีพ"
    c1, c2 = st.columns(2)
    c1.metric("ประเภทสมาชิก", f"สมัครแบบ{tier}")
    c2.metric("จำนวนเงิน", f"{record.amount} บาท")

    if payment["error"] or session is None or session.state == POLL_FAILED:
        failed_screen(record, session)
        return
    if session.state == POLL_SUCCESS:
        paid_screen(session)
        return

    charge = session.charge
    st.subheader("สแกน QR Code เพื่อชำระเงิน")
    if payment["qr_png"]:
        st.image(payment["qr_png"], width=320, caption="QR Code for Payment")
    else:
        st.image(charge.qr_image_url, width=320, caption="QR Code for Payment")

    exported = export_qr(
        charge.qr_image_url,
        charge_id=charge.id,
        rendered=payment["qr_png"],
        fetch=ProxyFetcher(config.PROXY_BASE_URL),
    )
    if isinstance(exported, QrDownload):
        st.download_button("ดาวน์โหลด QR Code", data=exported.data, file_name=exported.filename,
                           mime=exported.mime)
    else:
        st.link_button("เปิด QR Code ในแท็บใหม่", exported.url)
    st.caption("กรุณารอสักครู่หลังจากชำระเงิน...")

    poll_fragment()

    if st.button("ยกเลิกและกลับไปแก้ไขข้อมูล"):
        session.cancel("cancelled")
        st.session_state.payment = None
        st.rerun()


def paid_screen(session: PaymentSession):
    st.success("ชำระเงินสำเร็จ! การสมัครสมาชิกของคุณเสร็จสมบูรณ์แล้ว")
    if session.committer.error is not None:
        st.error(
            "ชำระเงินแล้ว แต่ไม่สามารถบันทึกข้อมูลการสมัครได้ "
            f"กรุณาติดต่อเจ้าหน้าที่พร้อมรหัสการชำระเงิน {session.charge.id}"
        )
    if st.button("กลับหน้าหลัก", type="primary"):
        reset_registration()
        st.rerun()


def failed_screen(record: MembershipRecord, session: PaymentSession | None):
    st.error("การชำระเงินไม่สำเร็จ กรุณาลองใหม่อีกครั้ง")
    reason = session.poller.reason if session else None
    if reason == "timeout":
        st.caption("หมดเวลารอการชำระเงิน")
    elif reason == "left page":
        st.caption("หยุดรอการชำระเงินเนื่องจากออกจากหน้านี้ หากชำระเงินแล้วกรุณาติดต่อเจ้าหน้าที่")
    c1, c2 = st.columns(2)
    with c1:
        if st.button("ลองชำระเงินใหม่", type="primary"):
            start_payment(record)
            st.rerun()
    with c2:
        if st.button("กลับไปแก้ไขข้อมูล"):
            st.session_state.payment = None
            st.session_state.step = 3
            st.rerun()


# ---------- Admin ----------

def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("ออกจากระบบสำเร็จ")


def login_screen():
    st.title("🔐 เข้าสู่ระบบผู้ดูแล")
    username = st.text_input("อีเมล")
    password = st.text_input("รหัสผ่าน", type="password")
    if st.button("เข้าสู่ระบบ", type="primary"):
        if not username or not password:
            st.error("กรุณากรอกอีเมลและรหัสผ่าน")
        elif auth.login(get_db(), username, password):
            st.session_state.logged_in = True
            st.session_state.username = username.strip().lower()
            st.rerun()
        else:
            st.error("อีเมลหรือรหัสผ่านไม่ถูกต้อง")


def password_form(required: bool):
    p1 = st.text_input("รหัสผ่านใหม่", type="password")
    p2 = st.text_input("ยืนยันรหัสผ่านใหม่", type="password")
    if st.button("เปลี่ยนรหัสผ่าน", type="primary"):
        if len(p1) < 6:
            st.error("รหัสผ่านต้องมีอย่างน้อย 6 ตัวอักษร")
        elif p1 != p2:
            st.error("รหัสผ่านไม่ตรงกัน")
        else:
            auth.change_password(get_db(), st.session_state.username, p1)
            st.success("เปลี่ยนรหัสผ่านแล้ว")
            if required:
                st.rerun()


def force_change_password_screen():
    st.title("⚠️ ต้องเปลี่ยนรหัสผ่าน")
    st.warning("กรุณาเปลี่ยนรหัสผ่านเริ่มต้นก่อนใช้งาน")
    password_form(required=True)


def members_frame(members: list[Member]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "id": m.id,
                "ชื่อ-นามสกุล": m.record.full_name,
                "เลขบัตรประชาชน": m.record.id_card,
                "เบอร์โทรศัพท์": m.record.phone,
                "ประเภทสมาชิก": utils.membership_type_label(m.record.membership_type),
                "การชำระเงิน": PAYMENT_METHODS.get(m.record.payment_method, ""),
                "สถานะ": STATUS_LABELS.get(m.record.status, m.record.status),
                "วันที่สมัคร": utils.format_thai_date(m.record.created_at),
            }
            for m in members
        ]
    )


def members_page():
    store = get_store()
    st.header("👥 ระบบบริหารจัดการสมาชิก")

    counts = store.count_by_status()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("สมาชิกทั้งหมด", sum(counts.values()))
    c2.metric("รอดำเนินการ", counts["pending"])
    c3.metric("อนุมัติ", counts["approved"])
    c4.metric("ปฏิเสธ", counts["rejected"])

    c1, c2 = st.columns([2, 1])
    with c1:
        search = st.text_input("ค้นหา (ชื่อ, นามสกุล, เลขบัตร, เบอร์โทร)")
    with c2:
        status_filter = st.selectbox("สถานะ", ["all", *MEMBER_STATUSES],
                                     format_func=lambda s: "ทั้งหมด" if s == "all" else STATUS_LABELS[s])

    members = store.list(search=search, status=status_filter)
    if members:
        st.dataframe(members_frame(members), use_container_width=True, hide_index=True)
        st.download_button(
            "ส่งออก CSV",
            data=utils.members_to_csv_bytes(members),
            file_name=f"members_{date.today().strftime('%Y%m%d')}.csv",
            mime="text/csv",
        )
    else:
        st.caption("ไม่พบข้อมูลสมาชิก")
        return

    st.divider()
    options = {m.id: m for m in members}
    selected = st.selectbox("เลือกสมาชิก", list(options), format_func=lambda i: options[i].record.full_name,
                            index=_index_of(list(options), st.session_state.selected_member_id))
    if not selected:
        return
    st.session_state.selected_member_id = selected

    if st.session_state.edit_member_id == selected:
        edit_member(store, options[selected])
    else:
        member_detail(store, options[selected])


def member_actions(store: MemberStore, member: Member):
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        if st.button("✅ อนุมัติ", disabled=member.record.status == "approved"):
            store.set_status(member.id, "approved")
            st.toast("สถานะสมาชิกได้ถูกเปลี่ยนเป็น อนุมัติ แล้ว")
            st.rerun()
    with c2:
        if st.button("❌ ปฏิเสธ", disabled=member.record.status == "rejected"):
            store.set_status(member.id, "rejected")
            st.toast("สถานะสมาชิกได้ถูกเปลี่ยนเป็น ปฏิเสธ แล้ว")
            st.rerun()
    with c3:
        if st.button("✏️ แก้ไข"):
            st.session_state.edit_member_id = member.id
            st.rerun()
    with c4:
        confirm = st.checkbox("ยืนยันการลบ", key=f"del_confirm_{member.id}")
        if st.button("🗑️ ลบ", disabled=not confirm):
            store.delete(member.id)
            st.session_state.selected_member_id = None
            st.toast("ข้อมูลสมาชิกได้ถูกลบแล้ว")
            st.rerun()


def member_detail(store: MemberStore, member: Member):
    r = member.record
    member_actions(store, member)

    c1, c2 = st.columns(2)
    with c1:
        st.subheader("ข้อมูลส่วนตัว")
        religion = f"{r.religion} ({r.religion_other})" if r.religion_other else r.religion
        st.markdown(
            f"**ชื่อ-นามสกุล:** {r.full_name}  \n"
            f"**ศาสนา:** {religion}  \n"
            f"**สัญชาติ:** {r.nationality}  \n"
            f"**เลขประจำตัวประชาชน:** {r.id_card}  \n"
            f"**วันเกิด:** {utils.format_thai_date(r.birth_date)}  \n"
            f"**วันออกบัตร / หมดอายุ:** {utils.format_thai_date(r.card_issue_date)} / "
            f"{utils.format_thai_date(r.card_expiry_date)}"
        )
        st.subheader("ที่อยู่")
        st.write(r.address_text())
        st.subheader("ข้อมูลติดต่อ")
        st.markdown(
            f"**เบอร์โทรศัพท์:** {r.phone}  \n"
            f"**อีเมล:** {r.email or 'ไม่ระบุ'}  \n"
            f"**Line ID:** {r.line_id or 'ไม่ระบุ'}"
        )
        if r.political_opinion:
            st.markdown(f"**ความเห็นทางการเมือง:** {r.political_opinion}")
        st.subheader("ข้อมูลระบบ")
        st.markdown(
            f"**ประเภทสมาชิก:** {MEMBERSHIP_LABELS.get(r.membership_type, '')}  \n"
            f"**สถานะ:** {STATUS_LABELS.get(r.status, r.status)}  \n"
            f"**วันที่สมัคร:** {utils.format_thai_date(r.created_at)}  \n"
            f"**อัปเดตล่าสุด:** {utils.format_thai_date(r.updated_at)}"
        )
    with c2:
        st.subheader("เอกสารประกอบ")
        for label, uri in (("รูปถ่ายตนเองพร้อมเอกสาร", r.selfie_with_document_url),
                           ("รูปบัตรประจำตัวประชาชน", r.id_card_image_url)):
            data = utils.data_uri_bytes(uri)
            if data:
                st.image(data, caption=label, width=360)
        if r.charge_id or r.payment_status:
            payment_evidence(store, member)


def payment_evidence(store: MemberStore, member: Member):
    r = member.record
    st.subheader("หลักฐานการชำระเงิน")
    st.markdown(
        f"**สถานะการชำระเงิน:** {'ชำระเงินแล้ว' if r.payment_status == 'completed' else 'รอการชำระเงิน'}  \n"
        f"**รหัสการชำระเงิน:** `{r.charge_id}`  \n"
        f"**จำนวนเงิน:** {r.amount} บาท"
    )
    if not r.charge_id:
        return
    if st.button("ตรวจสอบสถานะการชำระเงิน"):
        try:
            charge = Charge.from_gateway(get_gateway().retrieve_charge(r.charge_id))
        except GatewayError as exc:
            logger.error("Checking charge %s failed: %s", r.charge_id, exc)
            st.error("ไม่สามารถตรวจสอบสถานะการชำระเงินได้")
            return
        st.session_state[f"charge_{r.charge_id}"] = charge
        if charge.status == CHARGE_SUCCESSFUL and r.payment_status != "completed":
            store.mark_payment_completed(member.id, charge.id)

    charge: Charge | None = st.session_state.get(f"charge_{r.charge_id}")
    if charge:
        st.info(f"สถานะ: {charge.status}")
        if charge.status == CHARGE_SUCCESSFUL:
            st.download_button(
                "ดาวน์โหลดใบเสร็จ",
                data=utils.receipt_html(r, charge, config.PARTY_NAME),
                file_name=f"receipt_{charge.id}.html",
                mime="text/html",
            )
        else:
            st.warning("การชำระเงินยังไม่สำเร็จ ไม่สามารถออกใบเสร็จได้")


def edit_member(store: MemberStore, member: Member):
    r = member.record
    st.subheader(f"✏️ แก้ไขข้อมูลสมาชิก: {r.full_name}")
    form = {}
    c1, c2, c3 = st.columns(3)
    with c1:
        form["title"] = st.selectbox("คำนำหน้าชื่อ", TITLES, index=_index_of(list(TITLES), r.title) or 0)
        form["title_other"] = st.text_input("คำนำหน้าชื่ออื่นๆ", value=r.title_other)
        form["first_name"] = st.text_input("ชื่อ", value=r.first_name)
        form["last_name"] = st.text_input("นามสกุล", value=r.last_name)
        form["religion"] = st.selectbox("ศาสนา", RELIGIONS, index=_index_of(list(RELIGIONS), r.religion) or 0)
        form["religion_other"] = st.text_input("ศาสนาอื่นๆ", value=r.religion_other)
        form["nationality"] = st.selectbox("สัญชาติ", NATIONALITIES,
                                           index=_index_of(list(NATIONALITIES), r.nationality) or 0)
    with c2:
        form["id_card"] = st.text_input("เลขประจำตัวประชาชน", value=r.id_card, max_chars=13)
        form["card_issue_date"] = st.text_input("วันที่ออกบัตร (YYYY-MM-DD)", value=r.card_issue_date)
        form["card_expiry_date"] = st.text_input("วันหมดอายุ (YYYY-MM-DD)", value=r.card_expiry_date)
        form["birth_date"] = st.text_input("วันเกิด (YYYY-MM-DD)", value=r.birth_date)
        form["phone"] = st.text_input("เบอร์โทรศัพท์", value=r.phone)
        form["email"] = st.text_input("อีเมล", value=r.email)
        form["line_id"] = st.text_input("Line ID", value=r.line_id)
    with c3:
        for name, label in (("house_number", "บ้านเลขที่"), ("moo", "หมู่"), ("village", "หมู่บ้าน"),
                            ("soi", "ซอย"), ("road", "ถนน"), ("sub_district", "แขวง/ตำบล"),
                            ("district", "เขต/อำเภอ"), ("province", "จังหวัด"), ("postal_code", "รหัสไปรษณีย์")):
            form[name] = st.text_input(label, value=getattr(r, name))
        types = list(MEMBERSHIP_LABELS)
        form["membership_type"] = st.selectbox("ประเภทสมาชิก", types, format_func=MEMBERSHIP_LABELS.get,
                                               index=_index_of(types, r.membership_type) or 0)
    form["political_opinion"] = st.text_area("ความเห็นทางการเมือง", value=r.political_opinion)

    merged = {**r.to_row(), **form}
    # stored records may carry a card that has expired since registration
    errors = utils.validate_membership(merged, min_age=config.MIN_MEMBER_AGE, allow_expired_card=True)
    show_errors(errors)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("บันทึก", type="primary", disabled=bool(errors)):
            store.update(member.id, utils.record_from_form(form, existing=r))
            st.session_state.edit_member_id = None
            st.toast("ข้อมูลสมาชิกได้ถูกอัปเดตแล้ว")
            st.rerun()
    with c2:
        if st.button("ยกเลิก"):
            st.session_state.edit_member_id = None
            st.rerun()


def settings_page():
    st.header("⚙️ ตั้งค่า")
    st.subheader("เปลี่ยนรหัสผ่าน")
    password_form(required=False)


def admin_app():
    if not st.session_state.logged_in:
        login_screen()
        return

    # seeded admin must replace the default password first
    if get_db().is_force_password_change():
        force_change_password_screen()
        return

    st.sidebar.caption(f"เข้าสู่ระบบในชื่อ: {st.session_state.username}")
    page = st.sidebar.radio("เมนูผู้ดูแล", ["รายชื่อสมาชิก", "ตั้งค่า"])
    if st.sidebar.button("ออกจากระบบ"):
        logout()
        st.rerun()

    if page == "รายชื่อสมาชิก":
        members_page()
    else:
        settings_page()


# --------- App entry ---------

def run():
    get_db()
    init_state()

    st.sidebar.title(f"🏛️ {config.PARTY_NAME}")
    section = st.sidebar.radio("ไปที่", ["สมัครสมาชิก", "ผู้ดูแลระบบ"])
    if section == "สมัครสมาชิก":
        registration_page()
    else:
        # polling only runs while the payment page is on screen
        leave_payment("left page")
        admin_app()
    st.sidebar.caption(f"© {datetime.now().year} {config.PARTY_NAME}")


if __name__ == "__main__":
    run()
