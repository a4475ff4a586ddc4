from __future__ import annotations

import json

import pytest

import address

RAW = {
    "provinces": [
        {"id": 2, "name_th": "สมุทรปราการ", "name_en": "Samut Prakan"},
        {"id": 1, "name_th": "กรุงเทพมหานคร", "name_en": "Bangkok"},
    ],
    "districts": [
        {"id": 1007, "name_th": "ปทุมวัน", "name_en": "Pathum Wan", "province_id": 1},
        {"id": 1001, "name_th": "พระนคร", "name_en": "Phra Nakhon", "province_id": 1},
        {"id": 1101, "name_th": "เมืองสมุทรปราการ", "name_en": "Mueang Samut Prakan", "province_id": 2},
    ],
    "sub_districts": [
        {"id": 100704, "name_th": "ลุมพินี", "name_en": "Lumphini", "district_id": 1007, "zip_code": 10330},
        {"id": 100701, "name_th": "รองเมือง", "name_en": "Rong Mueang", "district_id": 1007, "zip_code": 10330},
        {"id": 100101, "name_th": "พระบรมมหาราชวัง", "name_en": "Phra Borom", "district_id": 1001, "zip_code": 10200},
    ],
}


@pytest.fixture
def dataset():
    return address.build_dataset(RAW)


def test_provinces_are_sorted_by_thai_name(dataset):
    assert [p.id for p in dataset.provinces] == [1, 2]


def test_districts_for_province(dataset):
    assert [d.name_th for d in address.districts_for(dataset, 1)] == ["ปทุมวัน", "พระนคร"]
    assert [d.id for d in address.districts_for(dataset, 2)] == [1101]
    assert address.districts_for(dataset, 99) == []
    assert address.districts_for(dataset, None) == []


def test_sub_districts_for_district(dataset):
    assert [s.id for s in address.sub_districts_for(dataset, 1007)] == [100701, 100704]
    assert address.sub_districts_for(dataset, None) == []


def test_postal_code(dataset):
    assert address.postal_code_for(dataset, 100704) == "10330"
    assert address.postal_code_for(dataset, 100101) == "10200"
    assert address.postal_code_for(dataset, 1) == ""
    assert address.postal_code_for(dataset, None) == ""


def test_load_dataset_downloads_once_then_uses_cache(tmp_path):
    calls = []

    def fetch(url):
        calls.append(url)
        filename = url.rsplit("/", 1)[1]
        key = {v: k for k, v in address.DATASET_FILES.items()}[filename]
        return RAW[key]

    first = address.load_dataset(tmp_path, "https://example.com/data/", fetch=fetch)
    second = address.load_dataset(tmp_path, "https://example.com/data", fetch=fetch)

    assert len(calls) == 3
    assert calls[0] == "https://example.com/data/province.json"
    assert first == second
    assert (tmp_path / "district.json").exists()


def test_corrupt_cache_is_downloaded_again(tmp_path):
    for key, filename in address.DATASET_FILES.items():
        (tmp_path / filename).write_text(json.dumps(RAW[key], ensure_ascii=False), encoding="utf-8")
    (tmp_path / "sub_district.json").write_text("{not json", encoding="utf-8")

    calls = []

    def fetch(url):
        calls.append(url)
        return RAW["sub_districts"]

    dataset = address.load_dataset(tmp_path, "https://example.com/data", fetch=fetch)

    assert calls == ["https://example.com/data/sub_district.json"]
    assert len(dataset.sub_districts) == 3
    assert json.loads((tmp_path / "sub_district.json").read_text(encoding="utf-8"))[0]["id"] == 100704
