"""
Guest list CSV import / export.

Import is two-step: build_import_preview() parses and validates the upload so
the couple can review it, then commit_import() inserts the accepted rows.
Nothing touches the database until the commit.
"""
from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional

import asyncpg

from weddingplan.config import settings
from weddingplan.engine.catalog import DEFAULT_GUEST_PRIORITY, GUEST_PRIORITIES, RSVP_PENDING

logger = logging.getLogger(__name__)

EXPECTED_COLUMNS: tuple[str, ...] = ("Name", "Relationship", "Priority", "Plus One", "Address", "Notes")
NAME_ALIASES: tuple[str, ...] = ("name", "guest", "guest name", "full name")
INSERT_BATCH_SIZE = 100

TEMPLATE_CSV = (
    "Name,Relationship,Priority,Plus One,Address,Notes\n"
    'John Smith,Friend,Must,Jane Smith,"123 Main St, City, ST 12345",Vegetarian\n'
    'Jane Smith,Friend\'s Partner,Must,,"123 Main St, City, ST 12345",\n'
)

EXPORT_COLUMNS: tuple[str, ...] = (
    "Name", "Side", "Relationship", "Priority", "RSVP Status",
    "Dietary Restrictions", "Address", "Plus One", "Notes",
)


class CsvImportError(Exception):
    """Upload cannot be previewed or imported. The message is shown to the user."""


@dataclass
class ParsedGuest:
    row_number: int
    name: str
    relationship: str = ""
    priority: str = DEFAULT_GUEST_PRIORITY
    plus_one: str = ""
    address: str = ""
    notes: str = ""
    status: str = "valid"
    warnings: list[str] = field(default_factory=list)


@dataclass
class ImportPreview:
    guests: list[ParsedGuest]
    duplicates: list[str]
    skipped_rows: int
    unknown_columns: list[str]

    def to_import(self, include_duplicates: bool = False) -> list[ParsedGuest]:
        if include_duplicates:
            return list(self.guests)
        dupes = set(self.duplicates)
        return [g for g in self.guests if g.name not in dupes]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_csv(text: str) -> tuple[list[str], list[list[str]]]:
    """Split CSV text into (headers, rows). Quoted fields may contain commas; blank lines are dropped."""
    records = [
        [cell.strip() for cell in record]
        for record in csv.reader(io.StringIO(text))
        if any(cell.strip() for cell in record)
    ]
    if not records:
        return [], []
    return records[0], records[1:]


def _resolve_columns(headers: list[str]) -> dict[str, int]:
    normalized = [h.lower().strip() for h in headers]
    column_map: dict[str, int] = {}
    for col in EXPECTED_COLUMNS:
        if col.lower() in normalized:
            column_map[col] = normalized.index(col.lower())

    if "Name" not in column_map:
        for i, h in enumerate(normalized):
            if h in NAME_ALIASES:
                column_map["Name"] = i
                break
        else:
            raise CsvImportError(
                f"Missing required column: Name. Your file has columns: {', '.join(headers)}. "
                f"Expected: {', '.join(EXPECTED_COLUMNS)}"
            )
    return column_map


def _cell(row: list[str], column_map: dict[str, int], col: str) -> str:
    idx = column_map.get(col)
    if idx is None or idx >= len(row):
        return ""
    return row[idx].strip()


def build_import_preview(
    text: str,
    existing_names: Iterable[str],
    filename: Optional[str] = None,
    max_rows: Optional[int] = None,
) -> ImportPreview:
    """
    Parse an uploaded guest CSV and validate it for review.

    Raises CsvImportError for a wrong file type, an empty file, a missing Name
    column or too many rows. Row-level problems become warnings instead.
    """
    if filename is not None and not filename.lower().endswith(".csv"):
        raise CsvImportError("Please upload a CSV file (.csv)")
    if not text.strip():
        raise CsvImportError("The CSV file is empty")

    headers, rows = parse_csv(text)
    column_map = _resolve_columns(headers)

    known = {c.lower() for c in EXPECTED_COLUMNS} | {headers[column_map["Name"]].lower().strip()}
    unknown_columns = [h for h in headers if h.lower().strip() not in known]

    limit = max_rows if max_rows is not None else settings.csv_import_max_rows
    if len(rows) > limit:
        raise CsvImportError(f"Maximum {limit} guests per import. Your file has {len(rows)} rows.")

    existing = {n.lower().strip() for n in existing_names if n}
    guests: list[ParsedGuest] = []
    duplicates: list[str] = []
    skipped = 0

    for index, row in enumerate(rows):
        name = _cell(row, column_map, "Name")
        if not name:
            skipped += 1
            continue

        priority = _cell(row, column_map, "Priority")
        warnings: list[str] = []
        if priority and priority not in GUEST_PRIORITIES:
            warnings.append(f'Invalid priority "{priority}", will default to "{DEFAULT_GUEST_PRIORITY}"')

        if name.lower() in existing:
            duplicates.append(name)

        guests.append(ParsedGuest(
            row_number=index + 2,  # 1-indexed plus header row
            name=name,
            relationship=_cell(row, column_map, "Relationship"),
            priority=priority if priority in GUEST_PRIORITIES else DEFAULT_GUEST_PRIORITY,
            plus_one=_cell(row, column_map, "Plus One"),
            address=_cell(row, column_map, "Address"),
            notes=_cell(row, column_map, "Notes"),
            status="warning" if warnings else "valid",
            warnings=warnings,
        ))

    return ImportPreview(
        guests=guests,
        duplicates=duplicates,
        skipped_rows=skipped,
        unknown_columns=unknown_columns,
    )


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------

INSERT_IMPORTED_GUEST_SQL = """
INSERT INTO guests (
    wedding_id, name, group_name, relationship, priority,
    plus_one, address, notes, rsvp_status
)
VALUES ($1::uuid, $2, $3, $4, $5, $6, $7, $8, $9);
"""


def import_group_name(today: date) -> str:
    return f"Imported - {today.strftime('%b %d, %Y')}"


async def commit_import(
    conn: asyncpg.Connection,
    wedding_id: str,
    preview: ImportPreview,
    include_duplicates: bool = False,
    today: Optional[date] = None,
) -> int:
    """Insert the previewed guests in batches inside one transaction. Returns the number inserted."""
    to_import = preview.to_import(include_duplicates)
    if not to_import:
        raise CsvImportError("No guests to import")

    group_name = import_group_name(today or date.today())
    args = [
        (
            wedding_id,
            g.name,
            group_name,
            g.relationship or None,
            g.priority or DEFAULT_GUEST_PRIORITY,
            g.plus_one or None,
            g.address or None,
            g.notes or None,
            RSVP_PENDING,
        )
        for g in to_import
    ]

    async with conn.transaction():
        for start in range(0, len(args), INSERT_BATCH_SIZE):
            await conn.executemany(INSERT_IMPORTED_GUEST_SQL, args[start:start + INSERT_BATCH_SIZE])

    logger.info("guest import: wedding=%s inserted=%d", wedding_id, len(args))
    return len(args)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def export_guests_csv(guests: Iterable[Mapping[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for g in guests:
        writer.writerow([
            g.get("name") or "",
            g.get("group_name") or "",
            g.get("relationship") or "",
            g.get("priority") or "",
            g.get("rsvp_status") or "",
            g.get("dietary_restrictions") or "",
            g.get("address") or "",
            g.get("plus_one") or "",
            g.get("notes") or "",
        ])
    return buf.getvalue()
