"""
CSV credential exports.

Three shapes are read:

1. Header + rows, columns located by header substring
   (``email,password,totp,backup_email`` and vendor exports with extra
   business columns such as ``profile_id`` or ``billing_status``).
2. Headerless rows, read positionally: email, password, 2FA, aux email,
   then any API keys.
3. CSV rows each followed by lines of API keys.

Vendor exports often pack a second account into the business columns of a
row. Rows that are not in one of the standard shapes are re-scanned for
those extra emails; obvious placeholder tokens next to them are left empty
rather than guessed.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .format_detector import csv_fields, csv_key_groups, has_csv_header, split_lines
from .records import raw_record
from .token_classifier import (
    find_all_emails,
    find_api_keys,
    is_api_key_token,
    is_email,
    mask_secret,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Column vocabulary
# ---------------------------------------------------------------------------

_COLUMN_CANDIDATES: dict[str, tuple[str, ...]] = {
    "email": ("email",),
    "email_password": ("password",),
    "two_fa_code": ("totp", "2fa", "two_fa"),
    "auxiliary_email": ("backup_email", "auxiliary_email", "aux_email"),
    "auxiliary_email_password": ("backup_password", "aux_password"),
}

API_KEY_COLUMN = "api_key"

# Business columns that never hold a 2FA secret (plus any header containing "id").
_NON_SECRET_HEADERS = frozenset({
    "status", "reason", "billing_status", "billing_id",
    "profile_id", "account_idx", "cpny",
})
_OPAQUE_ID_PREFIXES = ("01", "k13")
_TWO_FA_VALUE_RE = re.compile(r"^[a-zA-Z0-9]{6,8}$")

STANDARD_ROW_MIN_FIELDS = 4
STANDARD_HEADER_MIN_COLUMNS = 5
CSV_API_KEYS_MIN_FIELDS = 4

# Placeholder values seen next to packed extra emails.
_JUNK_LITERALS = frozenset({"k12a0dn7"})
_JUNK_PATTERNS = [
    re.compile(r"^[a-z0-9]{8}$"),  # opaque 8-char IDs
    re.compile(r"^[0-9]{1,3}$"),
    re.compile(r"^[a-z]{1,3}$"),  # country codes
    re.compile(r"^\.+$"),
    re.compile(r"^,+$"),
]


def is_junk_value(value: str) -> bool:
    """Placeholder or ID-like value that must not become a password or 2FA code."""
    if not value or not value.strip():
        return True
    if value in _JUNK_LITERALS:
        return True
    return any(p.match(value) for p in _JUNK_PATTERNS)


def _find_column_index(headers: list[str], *candidates: str) -> Optional[int]:
    """Index of the first column matching a candidate, exact names before substrings."""
    lower_headers = [h.strip().lower() for h in headers]
    for candidate in candidates:
        if candidate in lower_headers:
            return lower_headers.index(candidate)
    for candidate in candidates:
        for i, h in enumerate(lower_headers):
            if candidate in h:
                return i
    return None


def _field(fields: list[str], index: Optional[int]) -> str:
    if index is None or index >= len(fields):
        return ""
    return fields[index]


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------

def guess_two_fa_column(headers: list[str], fields: list[str], mapped: set[int]) -> str:
    """First value that looks like a short 2FA code in an unmapped, non-business column."""
    for i, value in enumerate(fields):
        header = headers[i].strip().lower() if i < len(headers) else ""
        if i in mapped or header in _NON_SECRET_HEADERS or "id" in header:
            continue
        if not _TWO_FA_VALUE_RE.match(value) or is_email(value) or "-" in value:
            continue
        if value.startswith(_OPAQUE_ID_PREFIXES):
            continue
        return value
    return ""


def rescan_extra_emails(fields: list[str], consumed: set[str], source: str) -> list[dict]:
    """Records for emails packed into a row's other columns."""
    records = []
    for email in find_all_emails(" ".join(fields)):
        if email in consumed:
            continue
        consumed.add(email)
        index = next((i for i, f in enumerate(fields) if email in f), None)
        if index is None:
            continue
        password = _field(fields, index + 1)
        two_fa = _field(fields, index + 2)
        if is_junk_value(password):
            password = ""
        if is_junk_value(two_fa):
            two_fa = ""
        logger.debug("[CSV] Extra email %s found in column %d", email, index)
        records.append(raw_record(email, source, email_password=password, two_fa_code=two_fa))
    return records


def _is_standard_row(fields: list[str]) -> bool:
    return (
        len(fields) >= STANDARD_ROW_MIN_FIELDS
        and is_email(fields[0])
        and bool(fields[1])
        and is_email(fields[3])
    )


def _is_standard_header(headers: list[str]) -> bool:
    lower_headers = [h.strip().lower() for h in headers]
    return (
        len(lower_headers) >= STANDARD_HEADER_MIN_COLUMNS
        and "email" in lower_headers
        and ("backup_email" in lower_headers or "auxiliary_email" in lower_headers)
    )


# ---------------------------------------------------------------------------
# Row parsers
# ---------------------------------------------------------------------------

def parse_headerless_row(line: str) -> list[dict]:
    """``email,password[,2fa[,aux_email[,api_key...]]]`` plus packed extra accounts."""
    fields = csv_fields(line)
    email, password, two_fa, aux = (_field(fields, i) for i in range(4))
    records = []
    consumed = {email, aux}

    if is_email(email):
        keys = [f for f in fields[4:] if is_api_key_token(f)]
        records.append(raw_record(
            email, line,
            email_password=password,
            two_fa_code=two_fa,
            auxiliary_email=aux,
            account_key=",".join(keys),
        ))

    if not _is_standard_row(fields):
        records.extend(rescan_extra_emails(fields, consumed, line))
    return records


def parse_headered(lines: list[str]) -> list[dict]:
    headers = [h.strip().lower() for h in csv_fields(lines[0])]
    col_map = {
        name: _find_column_index(headers, *candidates)
        for name, candidates in _COLUMN_CANDIDATES.items()
    }
    key_columns = [i for i, h in enumerate(headers) if API_KEY_COLUMN in h]
    mapped = {i for i in col_map.values() if i is not None}
    standard = _is_standard_header(headers)
    logger.debug("[CSV] Column map: %s (api key columns: %s)", col_map, key_columns)

    records: list[dict] = []
    for line in lines[1:]:
        fields = csv_fields(line)
        values = {name: _field(fields, index) for name, index in col_map.items()}

        if col_map["two_fa_code"] is None:
            values["two_fa_code"] = guess_two_fa_column(headers, fields, mapped)

        keys = [_field(fields, i) for i in key_columns if is_api_key_token(_field(fields, i))]

        email = values.pop("email")
        if is_email(email):
            records.append(raw_record(email, line, account_key=",".join(keys), **values))
        else:
            logger.debug("[CSV] Skipping row without email: %r", line)

        if not standard:
            consumed = {email, values["auxiliary_email"]}
            records.extend(rescan_extra_emails(fields, consumed, line))
    return records


# ---------------------------------------------------------------------------
# Grammar entry points
# ---------------------------------------------------------------------------

def parse_csv(text: str) -> list[dict]:
    lines = split_lines(text)
    if not lines:
        return []

    if has_csv_header(lines):
        records = parse_headered(lines)
    else:
        records = [record for line in lines for record in parse_headerless_row(line)]

    for record in records:
        logger.debug("[CSV] %s / %s", record["email"], mask_secret(record.get("email_password", "")))
    return records


def parse_csv_api_keys(text: str) -> list[dict]:
    """CSV rows (email,password,2fa,aux[,password]) each followed by API-key lines."""
    records = []
    for row, key_lines in csv_key_groups(split_lines(text)):
        fields = csv_fields(row)
        if len(fields) < CSV_API_KEYS_MIN_FIELDS:
            logger.debug("[CSV] Key group row has too few fields: %r", row)
            continue
        password = fields[1] or _field(fields, 4)
        keys = [key for line in key_lines for key in find_api_keys(line)]
        records.append(raw_record(
            fields[0],
            f"{row} ({len(keys)} API keys)",
            email_password=password,
            two_fa_code=fields[2],
            auxiliary_email=fields[3],
            account_key=",".join(keys),
        ))
        logger.debug("[CSV] %s with %d API keys", fields[0], len(keys))
    return records
