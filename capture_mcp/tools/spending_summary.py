"""Client-side spending aggregation over a page of Tango contract records.

Tango has no grouped-spending endpoint we can rely on, so the summary tool
fetches one page of contracts and buckets it here:

1. Normalize each raw contract into a `SpendingRecord` (missing amounts -> 0).
2. Map every record to a ``(key, label)`` pair with the grouping function for
   the requested dimension. Missing values land in explicit sentinel buckets.
3. Accumulate total and count per bucket.
4. Sort by total descending (ties by key) and assign ranks 1..k.

Totals only cover the fetched page, not the full upstream result set.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..utils.date_utils import UNKNOWN_MONTH, month_bucket
from .base import first_present, to_amount


UNKNOWN_AGENCY = "UNK"
UNKNOWN_VENDOR = "UNK"
UNSPECIFIED_NAICS = "Unspecified NAICS"
UNSPECIFIED_PSC = "Unspecified PSC"
ALL_RECORDS = "ALL"


class GroupBy(str, Enum):
    """Dimensions the spending summary can bucket by."""

    AGENCY = "agency"
    VENDOR = "vendor"
    NAICS = "naics"
    PSC = "psc"
    MONTH = "month"
    TOTAL = "total"


@dataclass(frozen=True)
class SpendingRecord:
    """One contract reduced to the fields the summary groups on."""

    key: str | None
    obligated_amount: float
    award_date: str | None
    agency_name: str | None
    agency_code: str | None
    recipient_name: str | None
    recipient_uei: str | None
    naics_code: str | None
    psc_code: str | None


@dataclass
class SpendingBucket:
    key: str
    label: str
    total_obligated: float = 0.0
    award_count: int = 0

    def add(self, record: SpendingRecord) -> None:
        self.total_obligated += record.obligated_amount
        self.award_count += 1


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_contract(raw: dict[str, Any]) -> SpendingRecord:
    """Reduce a raw Tango contract to a SpendingRecord."""
    return SpendingRecord(
        key=_text(first_present(raw.get("piid"), raw.get("contract_id"), raw.get("key"))),
        obligated_amount=to_amount(
            first_present(raw.get("award_amount"), raw.get("total_dollars_obligated"))
        ),
        award_date=_text(first_present(raw.get("award_date"), raw.get("date_signed"))),
        agency_name=_text(raw.get("agency_name")),
        agency_code=_text(raw.get("agency_code")),
        recipient_name=_text(raw.get("vendor_name")),
        recipient_uei=_text(raw.get("vendor_uei")),
        naics_code=_text(raw.get("naics_code")),
        psc_code=_text(raw.get("psc_code")),
    )


def _agency_group(record: SpendingRecord) -> tuple[str, str]:
    key = record.agency_code or UNKNOWN_AGENCY
    return key, record.agency_name or key


def _vendor_group(record: SpendingRecord) -> tuple[str, str]:
    key = record.recipient_uei or (record.recipient_name.upper() if record.recipient_name else None)
    key = key or UNKNOWN_VENDOR
    return key, record.recipient_name or key


def _naics_group(record: SpendingRecord) -> tuple[str, str]:
    key = record.naics_code or UNSPECIFIED_NAICS
    return key, key


def _psc_group(record: SpendingRecord) -> tuple[str, str]:
    key = record.psc_code or UNSPECIFIED_PSC
    return key, key


def _month_group(record: SpendingRecord) -> tuple[str, str]:
    key = month_bucket(record.award_date)
    return key, key


def _total_group(record: SpendingRecord) -> tuple[str, str]:
    return ALL_RECORDS, "All contracts"


GROUP_KEY_FUNCTIONS: dict[GroupBy, Callable[[SpendingRecord], tuple[str, str]]] = {
    GroupBy.AGENCY: _agency_group,
    GroupBy.VENDOR: _vendor_group,
    GroupBy.NAICS: _naics_group,
    GroupBy.PSC: _psc_group,
    GroupBy.MONTH: _month_group,
    GroupBy.TOTAL: _total_group,
}


def group_spending(records: Iterable[SpendingRecord], group_by: GroupBy) -> list[dict[str, Any]]:
    """Bucket records by `group_by` and return ranked bucket dicts.

    Examples:
        >>> recs = [normalize_contract({"agency_code": "9700", "award_amount": 5}),
        ...         normalize_contract({"award_amount": 7})]
        >>> [(g["rank"], g["key"], g["total_obligated"]) for g in group_spending(recs, GroupBy.AGENCY)]
        [(1, 'UNK', 7.0), (2, '9700', 5.0)]
    """
    key_fn = GROUP_KEY_FUNCTIONS[group_by]
    buckets: dict[str, SpendingBucket] = {}

    for record in records:
        key, label = key_fn(record)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = SpendingBucket(key=key, label=label)
        bucket.add(record)

    grand_total = sum(bucket.total_obligated for bucket in buckets.values())
    ordered = sorted(buckets.values(), key=lambda b: (-b.total_obligated, b.key))

    return [
        {
            "rank": rank,
            "key": bucket.key,
            "label": bucket.label,
            "total_obligated": bucket.total_obligated,
            "award_count": bucket.award_count,
            "average_award": bucket.total_obligated / bucket.award_count,
            "share_of_total": (
                round(bucket.total_obligated / grand_total * 100, 2) if grand_total else 0.0
            ),
        }
        for rank, bucket in enumerate(ordered, start=1)
    ]


__all__ = [
    "ALL_RECORDS",
    "GROUP_KEY_FUNCTIONS",
    "GroupBy",
    "SpendingRecord",
    "UNKNOWN_AGENCY",
    "UNKNOWN_MONTH",
    "UNKNOWN_VENDOR",
    "UNSPECIFIED_NAICS",
    "UNSPECIFIED_PSC",
    "group_spending",
    "normalize_contract",
]
