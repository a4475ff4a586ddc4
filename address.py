"""
address.py
Thai address reference data (province -> district -> sub-district) and the
pure lookups behind the cascading address dropdowns.

The dataset is the public kongvut/thai-province-data JSON, cached on disk
after the first download.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import requests

logger = logging.getLogger(__name__)

DATASET_FILES = {
    "provinces": "province.json",
    "districts": "district.json",
    "sub_districts": "sub_district.json",
}


@dataclass(frozen=True)
class Province:
    id: int
    name_th: str
    name_en: str


@dataclass(frozen=True)
class District:
    id: int
    name_th: str
    name_en: str
    province_id: int


@dataclass(frozen=True)
class SubDistrict:
    id: int
    name_th: str
    name_en: str
    district_id: int
    zip_code: str


@dataclass(frozen=True)
class AddressDataset:
    provinces: tuple[Province, ...]
    districts: tuple[District, ...]
    sub_districts: tuple[SubDistrict, ...]


def _parse_provinces(items: list[dict[str, Any]]) -> tuple[Province, ...]:
    return tuple(
        Province(id=int(p["id"]), name_th=str(p.get("name_th") or ""), name_en=str(p.get("name_en") or ""))
        for p in items
    )


def _parse_districts(items: list[dict[str, Any]]) -> tuple[District, ...]:
    return tuple(
        District(
            id=int(d["id"]),
            name_th=str(d.get("name_th") or ""),
            name_en=str(d.get("name_en") or ""),
            province_id=int(d["province_id"]),
        )
        for d in items
    )


def _parse_sub_districts(items: list[dict[str, Any]]) -> tuple[SubDistrict, ...]:
    return tuple(
        SubDistrict(
            id=int(s["id"]),
            name_th=str(s.get("name_th") or ""),
            name_en=str(s.get("name_en") or ""),
            district_id=int(s["district_id"]),
            zip_code=str(s.get("zip_code") or ""),
        )
        for s in items
    )


def build_dataset(raw: dict[str, list[dict[str, Any]]]) -> AddressDataset:
    return AddressDataset(
        provinces=tuple(sorted(_parse_provinces(raw.get("provinces") or []), key=lambda p: p.name_th)),
        districts=_parse_districts(raw.get("districts") or []),
        sub_districts=_parse_sub_districts(raw.get("sub_districts") or []),
    )


def download_json(url: str, timeout: float = 30) -> list[dict[str, Any]]:
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def load_dataset(
    cache_dir: Path,
    base_url: str,
    fetch: Callable[[str], list[dict[str, Any]]] = download_json,
) -> AddressDataset:
    """
    Read the three dataset files from cache_dir, downloading any that are
    missing. A corrupt cache file is re-downloaded.
    """
    cache_dir.mkdir(parents=True, exist_ok=True)
    raw: dict[str, list[dict[str, Any]]] = {}
    for key, filename in DATASET_FILES.items():
        path = cache_dir / filename
        items = None
        if path.exists():
            try:
                items = json.loads(path.read_text(encoding="utf-8"))
            except ValueError as exc:
                logger.warning("Ignoring unreadable address cache %s: %s", path, exc)
        if items is None:
            url = f"{base_url.rstrip('/')}/{filename}"
            logger.info("Downloading address data: %s", url)
            items = fetch(url)
            path.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
        raw[key] = items
    dataset = build_dataset(raw)
    logger.info(
        "Address data loaded: %s provinces, %s districts, %s sub-districts",
        len(dataset.provinces),
        len(dataset.districts),
        len(dataset.sub_districts),
    )
    return dataset


def districts_for(dataset: AddressDataset, province_id: int | None) -> list[District]:
    if province_id is None:
        return []
    return sorted((d for d in dataset.districts if d.province_id == province_id), key=lambda d: d.name_th)


def sub_districts_for(dataset: AddressDataset, district_id: int | None) -> list[SubDistrict]:
    if district_id is None:
        return []
    return sorted((s for s in dataset.sub_districts if s.district_id == district_id), key=lambda s: s.name_th)


def postal_code_for(dataset: AddressDataset, sub_district_id: int | None) -> str:
    for s in dataset.sub_districts:
        if s.id == sub_district_id:
            return s.zip_code
    return ""
