"""Parsing of contribution CSV exports.

Expected columns (matched case-insensitively by substring):
CaseNumber, CombinedCaseNumber (optional), CaseTitle,
ContributorNickname, Amount, Month.

CombinedCaseNumber has the form YYYYMMNN (e.g. 20251201 is case 1 of
December 2025) and, when present, is the grouping key for cases.
"""
from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError

REQUIRED_COLUMNS = "CaseNumber, CaseTitle, ContributorNickname, Amount, Month"

_AMOUNT_JUNK = re.compile(r"[^\d.\-]")


class CsvFormatError(ValidationError):
    """The uploaded file is not a usable contribution CSV."""


@dataclass
class CsvRow:
    case_number: str
    case_title: str
    contributor_nickname: str
    amount: Decimal
    month: str
    combined_case_number: str = ""

    @property
    def case_key(self) -> str:
        return self.combined_case_number or self.case_number


def _find(header: list[str], *needles: str, exclude: str | None = None) -> int:
    for index, name in enumerate(header):
        lowered = name.lower()
        if exclude and exclude in lowered:
            continue
        if any(n in lowered for n in needles):
            return index
    return -1


def _parse_amount(raw: str) -> Decimal | None:
    cleaned = _AMOUNT_JUNK.sub("", raw or "")
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def parse_csv(content: str) -> list[CsvRow]:
    """Parse CSV text into rows.

    Rows that are too short, or whose amount is missing, unparsable or not
    positive, are skipped silently.
    """
    lines = [line for line in content.splitlines() if line.strip()]
    if len(lines) < 2:
        raise CsvFormatError("CSV must have at least a header and one data row")

    records = list(csv.reader(io.StringIO("\n".join(lines)), skipinitialspace=True))
    header = [h.strip() for h in records[0]]

    case_idx = _find(header, "casenumber", exclude="combined")
    combined_idx = _find(header, "combinedcasenumber")
    title_idx = _find(header, "casetitle", "case_title")
    contributor_idx = _find(header, "contributornickname", "contributor")
    amount_idx = _find(header, "amount")
    month_idx = _find(header, "month")

    if -1 in (case_idx, title_idx, contributor_idx, amount_idx, month_idx):
        raise CsvFormatError(f"CSV must contain columns: {REQUIRED_COLUMNS}")

    width = max(case_idx, combined_idx, title_idx, contributor_idx, amount_idx, month_idx) + 1

    rows = []
    for record in records[1:]:
        cells = [c.strip() for c in record]
        if len(cells) < width:
            continue
        amount = _parse_amount(cells[amount_idx])
        if amount is None or amount <= 0:
            continue
        rows.append(CsvRow(
            case_number=cells[case_idx],
            combined_case_number=cells[combined_idx] if combined_idx >= 0 else "",
            case_title=cells[title_idx],
            contributor_nickname=cells[contributor_idx],
            amount=amount,
            month=cells[month_idx],
        ))
    return rows


def generate_summary(rows: list[CsvRow]) -> dict:
    """Preview numbers shown before a batch is created."""
    grouped: dict[str, dict] = {}
    distinct = set()
    contributors = set()
    months: dict[str, set] = {}
    total = Decimal("0")

    for row in rows:
        key = row.case_key
        group = grouped.setdefault(key, {"title": row.case_title, "items": 0, "amount": Decimal("0")})
        group["items"] += 1
        group["amount"] += row.amount

        distinct.add(row.combined_case_number or f"{row.month}-{row.case_number}")
        months.setdefault(row.month, set()).add(key)
        contributors.add(row.contributor_nickname)
        total += row.amount

    return {
        "total_items": len(rows),
        "unique_cases": len(grouped),
        "distinct_cases": len(distinct),
        "unique_contributors": len(contributors),
        "total_amount": str(total),
        "cases": [
            {
                "case_number": key,
                "case_title": g["title"],
                "item_count": g["items"],
                "total_amount": str(g["amount"]),
            }
            for key, g in grouped.items()
        ],
        "cases_by_month": {month: len(keys) for month, keys in months.items()},
    }


def validate_rows(rows: list[CsvRow]) -> tuple[list[CsvRow], list[dict]]:
    valid, invalid = [], []
    for row in rows:
        errors = []
        if not row.case_number.strip():
            errors.append("Case number is required")
        if not row.case_title.strip():
            errors.append("Case title is required")
        if not row.contributor_nickname.strip():
            errors.append("Contributor nickname is required")
        if not row.amount or row.amount <= 0:
            errors.append("Amount must be greater than 0")
        if not row.month.strip():
            errors.append("Month is required")

        if errors:
            invalid.append({"row": row, "error": "; ".join(errors)})
        else:
            valid.append(row)
    return valid, invalid
