from __future__ import annotations

import pytest

from tests.conftest import make_record


def test_push_and_get(store, record):
    member_id = store.push(record)

    member = store.get(member_id)
    assert member.id == member_id
    assert member.record.first_name == record.first_name
    assert member.record.status == "pending"
    assert member.record.created_at
    assert member.record.updated_at


def test_push_generates_distinct_ids(store, record):
    assert store.push(record) != store.push(record)


def test_get_missing(store):
    assert store.get("nope") is None


def test_list_search_and_filter(store):
    a = store.push(make_record(first_name="Anong", last_name="Srisuk", phone="0811111111"))
    b = store.push(make_record(first_name="Boonmee", id_card="3100500099999"))
    store.set_status(b, "approved")

    assert {m.id for m in store.list()} == {a, b}
    assert [m.id for m in store.list(search="anong")] == [a]
    assert [m.id for m in store.list(search="SRISUK")] == [a]
    assert [m.id for m in store.list(search="31005")] == [b]
    assert [m.id for m in store.list(search="0811111111")] == [a]
    assert [m.id for m in store.list(status="approved")] == [b]
    assert [m.id for m in store.list(status="pending")] == [a]
    assert store.list(status="rejected") == []


def test_set_status(store, record):
    member_id = store.push(record)
    before = store.get(member_id).record

    assert store.set_status(member_id, "rejected")
    after = store.get(member_id).record
    assert after.status == "rejected"
    assert after.created_at == before.created_at


def test_set_status_rejects_unknown_status(store, record):
    member_id = store.push(record)
    with pytest.raises(ValueError):
        store.set_status(member_id, "deleted")


def test_update_keeps_created_at(store, record):
    member_id = store.push(record)
    created = store.get(member_id).record.created_at

    assert store.update(member_id, record.with_changes(phone="0899999999", created_at="1999-01-01"))
    updated = store.get(member_id).record
    assert updated.phone == "0899999999"
    assert updated.created_at == created


def test_mark_payment_completed(store):
    member_id = store.push(make_record(payment_method="cash"))

    assert store.mark_payment_completed(member_id, "chrg_9")
    rec = store.get(member_id).record
    assert rec.payment_status == "completed"
    assert rec.charge_id == "chrg_9"


def test_delete(store, record):
    member_id = store.push(record)

    assert store.delete(member_id)
    assert store.get(member_id) is None
    assert not store.delete(member_id)


def test_count_by_status(store, record):
    ids = [store.push(record) for _ in range(3)]
    store.set_status(ids[0], "approved")

    assert store.count_by_status() == {"pending": 2, "approved": 1, "rejected": 0}
