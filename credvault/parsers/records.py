"""Canonical credential record and the normalizer every parser output passes through."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Optional

from .token_classifier import guess_account_type, is_email, mask_secret

logger = logging.getLogger(__name__)

NOTES_EXCERPT_LENGTH = 60

RECORD_FIELDS = (
    "email",
    "email_password",
    "two_fa_code",
    "auxiliary_email",
    "auxiliary_email_password",
    "account_key",
    "account_type",
    "storage_date",
    "notes",
)


@dataclass
class CredentialRecord:
    """One normalized account tuple extracted from pasted text."""

    email: str
    email_password: str = ""
    two_fa_code: str = ""  # TOTP secret, one-time code or recovery phrase
    auxiliary_email: str = ""  # recovery/backup mailbox
    auxiliary_email_password: str = ""
    account_key: str = ""  # comma-joined API keys
    account_type: str = ""  # Gmail | Outlook | Yahoo | iCloud | 其他邮箱 | caller override
    storage_date: str = ""  # ISO date
    notes: str = ""  # "[grammar] source excerpt", audit only

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def raw_record(email: str, source: str = "", **fields: str) -> dict[str, str]:
    """Parser-side field dict; ``source`` ends up in the notes excerpt."""
    raw = {"email": email, "notes": source}
    raw.update(fields)
    return raw


def excerpt(text: str, limit: int = NOTES_EXCERPT_LENGTH) -> str:
    """Single-line, truncated copy of ``text`` for the notes field."""
    flat = " ".join(str(text).split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_record(
    raw: dict[str, Any],
    grammar: str,
    today: Optional[date] = None,
    account_type: str = "",
) -> Optional[CredentialRecord]:
    """Map one parser field dict onto a :class:`CredentialRecord`.

    Returns ``None`` when the dict has no syntactically valid email; that is
    the only rejection rule.
    """
    email = _clean(raw.get("email"))
    if not is_email(email):
        logger.debug("[NORMALIZE] Dropping %s candidate without a valid email: %r", grammar, email)
        return None

    record = CredentialRecord(
        email=email,
        email_password=_clean(raw.get("email_password")),
        two_fa_code=_clean(raw.get("two_fa_code")),
        auxiliary_email=_clean(raw.get("auxiliary_email")),
        auxiliary_email_password=_clean(raw.get("auxiliary_email_password")),
        account_key=_clean(raw.get("account_key")),
    )

    if not record.auxiliary_email:
        record.auxiliary_email_password = ""

    record.account_type = (
        _clean(account_type)
        or _clean(raw.get("account_type"))
        or guess_account_type(email)
    )
    record.storage_date = _clean(raw.get("storage_date")) or (today or date.today()).isoformat()

    source = _clean(raw.get("notes"))
    record.notes = f"[{grammar}] {excerpt(source)}" if source else f"[{grammar}]"

    logger.debug(
        "[NORMALIZE] %s -> %s / %s (aux=%s, keys=%d)",
        grammar,
        record.email,
        mask_secret(record.email_password),
        record.auxiliary_email or "-",
        len(record.account_key.split(",")) if record.account_key else 0,
    )
    return record


def normalize_records(
    raws: Iterable[dict[str, Any]],
    grammar: str,
    today: Optional[date] = None,
    account_type: str = "",
) -> list[CredentialRecord]:
    """Normalize a parser's output list, preserving order and dropping invalid entries."""
    records: list[CredentialRecord] = []
    for raw in raws:
        if not isinstance(raw, dict):
            continue
        record = normalize_record(raw, grammar, today=today, account_type=account_type)
        if record is not None:
            records.append(record)
    return records
