from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from opentelemetry import trace

from ops_tools.errors import LocalStoreError
from ops_tools.rest_client import RestTableClient

logger = logging.getLogger(__name__)

MATERIALS_TABLE = "raw_materials"
VENDORS_TABLE = "vendors"

CATEGORY_CODES: dict[str, str] = {
    "Meat": "MEAT",
    "Grains": "GRNS",
    "Vegetables": "VEGT",
    "Oils": "OIL",
    "Spices": "SPCE",
    "Dairy": "DARY",
    "Packaging": "PKG",
    "Sanitary": "SAN",
    "Misc": "MISC",
}

_TRUE_VALUES = {"TRUE", "true", "1"}


@dataclass(frozen=True)
class SeedReport:
    succeeded: int
    failed: int
    total: int


def category_short_code(category: str | None) -> str:
    return CATEGORY_CODES.get((category or "").strip(), "MISC")


def next_material_code(short: str, existing_codes: list[str]) -> str:
    pattern = re.compile(rf"^RM-{re.escape(short)}-(\d+)$")
    numbers: list[int] = []
    for code in existing_codes:
        match = pattern.match(code)
        if match and int(match.group(1)) > 0:
            numbers.append(int(match.group(1)))
    next_number = max(numbers) + 1 if numbers else 1
    return f"RM-{short}-{next_number:03d}"


async def generate_material_code(store: RestTableClient, category: str | None) -> str:
    short = category_short_code(category)
    try:
        rows = await store.select(
            MATERIALS_TABLE,
            columns="code",
            filters={"code": f"like.RM-{short}-*"},
        )
    except LocalStoreError as exc:
        logger.warning(
            "could not fetch existing codes for %s: %s",
            category,
            exc,
            extra={"component": "materials"},
        )
        return f"RM-{short}-001"
    return next_material_code(short, [str(row.get("code") or "") for row in rows])


def read_material_rows(csv_path: str | Path) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    with Path(csv_path).open(encoding="utf-8", newline="") as handle:
        for raw in csv.DictReader(handle):
            row = {str(key).strip(): (value or "").strip() for key, value in raw.items() if key is not None}
            if not any(row.values()):
                continue
            rows.append(row)
    return rows


def _optional(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def validate_material_row(row: dict[str, str]) -> tuple[str, str]:
    name = _optional(row.get("name"))
    unit = _optional(row.get("unit"))
    if name is None or unit is None:
        raise ValueError("material row requires name and unit")
    return name, unit


def build_material(row: dict[str, str], *, code: str, vendor_map: dict[str, str]) -> dict[str, Any]:
    name, unit = validate_material_row(row)

    threshold_raw = _optional(row.get("low_stock_threshold"))
    vendor_name = _optional(row.get("vendor"))
    vendor_id = vendor_map.get(vendor_name.lower()) if vendor_name else None
    if vendor_name and vendor_id is None:
        logger.warning(
            "vendor %r not found, material %s will have no vendor",
            vendor_name,
            name,
            extra={"component": "materials"},
        )

    return {
        "name": name,
        "code": code,
        "unit": unit,
        "description": _optional(row.get("description")),
        "category": (row.get("category") or "").strip(),
        "low_stock_threshold": float(threshold_raw) if threshold_raw else 0.0,
        "is_active": row.get("is_active", "") in _TRUE_VALUES,
        "brand": _optional(row.get("brand")),
        "vendor_id": vendor_id,
    }


async def load_vendor_map(store: RestTableClient) -> dict[str, str]:
    vendors = await store.select(VENDORS_TABLE, columns="id,name", filters={"is_active": "eq.true"})
    return {
        str(vendor["name"]).strip().lower(): str(vendor["id"])
        for vendor in vendors
        if vendor.get("name") and vendor.get("id") is not None
    }


async def seed_raw_materials(csv_path: str | Path, *, store: RestTableClient) -> SeedReport:
    """Insert every CSV row into the raw materials table.

    A missing CSV or an unreadable vendors table aborts the run. Individual rows
    that fail are counted and skipped.
    """
    tracer = trace.get_tracer("ops-tools")
    with tracer.start_as_current_span("materials.seed") as span:
        rows = read_material_rows(csv_path)
        logger.info("found %d materials to seed", len(rows), extra={"component": "materials"})

        vendor_map = await load_vendor_map(store)
        logger.info("loaded %d vendors for mapping", len(vendor_map), extra={"component": "materials"})

        succeeded = 0
        failed = 0
        total = len(rows)
        for index, row in enumerate(rows, start=1):
            label = row.get("name") or f"row {index}"
            try:
                validate_material_row(row)
                code = await generate_material_code(store, row.get("category"))
                material = build_material(row, code=code, vendor_map=vendor_map)
                await store.insert(MATERIALS_TABLE, material)
            except (LocalStoreError, ValueError) as exc:
                failed += 1
                logger.error(
                    "[%d/%d] failed: %s: %s",
                    index,
                    total,
                    label,
                    exc,
                    extra={"component": "materials"},
                )
                continue
            succeeded += 1
            logger.info("[%d/%d] %s (%s)", index, total, label, code, extra={"component": "materials"})

        span.set_attribute("materials.succeeded", succeeded)
        span.set_attribute("materials.failed", failed)
        return SeedReport(succeeded=succeeded, failed=failed, total=total)
