"""
Free-form fallback parser.

Used when no structured grammar matched. The text is cut into record blocks
and each block is mined independently:

- emails: first is the account, second the auxiliary mailbox
- password: labelled value, else the value right after the email, else the
  first plausible token after it
- 2FA: labelled value, recovery-code groups, or a 32-char TOTP secret
- API keys, an explicit account-type label and a date, when present
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Optional

from .records import raw_record
from .token_classifier import (
    find_all_emails,
    find_api_keys,
    find_email,
    is_api_key_token,
    is_country_or_location_word,
    mask_secret,
)

logger = logging.getLogger(__name__)

MIN_BLOCK_LENGTH = 10
PASSWORD_WINDOW = 100
MIN_NEAR_PASSWORD_LENGTH = 3
MIN_SCANNED_PASSWORD_LENGTH = 4
TWO_FA_MAX_WORDS = 8
TOTP_SECRET_LENGTH = 32
TOTP_EMAIL_DISTANCE = 2

# ---------------------------------------------------------------------------
# Block splitting
# ---------------------------------------------------------------------------

_BLANK_LINE_RE = re.compile(r"\n\s*\n")
_LABELLED_RECORD_RE = re.compile(r"Password\s+Gmail:|2fa\s+Gmail:", re.IGNORECASE)
_SEPARATOR_LINE_RE = re.compile(r"^[ \t]*(?:-{3,}|={3,}|\*{3,})[ \t]*$", re.MULTILINE)
_INLINE_SEPARATOR_RE = re.compile(r"；{2,}|;;\s*;+")


def split_into_blocks(text: str) -> list[str]:
    blocks = [b for b in _BLANK_LINE_RE.split(text) if b.strip()]

    if len(blocks) == 1 and "\n" in text.strip() and not _LABELLED_RECORD_RE.search(text):
        lines = [line for line in text.split("\n") if line.strip()]
        if sum(1 for line in lines if "@" in line) > 1:
            blocks = lines

    if len(blocks) == 1:
        for separator in (_SEPARATOR_LINE_RE, _INLINE_SEPARATOR_RE):
            parts = separator.split(blocks[0])
            if len(parts) > 1:
                blocks = parts
                break

    blocks = [b.strip() for b in blocks]
    return [b for b in blocks if len(b) > MIN_BLOCK_LENGTH and "@" in b]


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------

_TRIPLE_DASH_RE = re.compile(r"-{3,}")
_TRAILING_SYMBOLS_RE = re.compile(r"[$*#!@~^&]+$")

_PASSWORD_GMAIL_RE = re.compile(r"Password\s+Gmail[:\s]+([^\n]+)", re.IGNORECASE)
# Tried in order against the text right after the email.
_NEAR_PASSWORD_PATTERNS = [
    re.compile(r"^[：:\s|,，-]*密码是([^\s,;，；]+)"),
    re.compile(r"密码[：:]\s*([^\s,;，；]+)"),
    re.compile(r"password[：:]\s*([^\s,;，；]+)", re.IGNORECASE),
    re.compile(r"^[：:\s|,，-]*([^\s,;，；|@辅助备用]+)"),
]
_NOT_PASSWORD_PARTS = ("@", "邮箱", "辅助", "备用")
_CHINESE_LABEL_RE = re.compile(r"^(辅助|备用|邮箱|密码|账号|类型|时间|密钥)")
_TOKEN_SPLIT_RE = re.compile(r"[\s,;，；|]+")

_TWO_FA_GMAIL_RE = re.compile(r"2fa\s+Gmail[:\s]+([^\n]+)", re.IGNORECASE)
TWO_FA_INDICATORS = ("2fa", "totp", "两步验证", "二次验证", "验证码", "authenticator", "authentication")
_TWO_FA_LABEL_RE = re.compile(
    r"(?:" + "|".join(TWO_FA_INDICATORS) + r")[ \t]*[:：][ \t]*([\w \t]+)",
    re.IGNORECASE,
)
_RECOVERY_GROUPS_RE = re.compile(
    r"^[ \t]*([a-z0-9]{4}(?:[ \t]+[a-z0-9]{4}){3,7})[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_TOTP_SECRET_RE = re.compile(rf"^[a-z0-9]{{{TOTP_SECRET_LENGTH}}}$", re.IGNORECASE)

_ACCOUNT_TYPE_LABEL_RE = re.compile(r"(?:账号类型|account\s*type)[：:]\s*([^\n,，]+)", re.IGNORECASE)
_DATE_RE = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


def _clean_password(value: str) -> str:
    return _TRAILING_SYMBOLS_RE.sub("", value.strip())


def parse_triple_dash(block: str) -> Optional[dict]:
    """``email---password---aux_email---aux_password---2fa``, read positionally."""
    parts = [p.strip() for p in _TRIPLE_DASH_RE.split(block)]
    if len(parts) < 2:
        return None
    email = find_email(parts[0])
    if not email:
        return None
    fields = parts + [""] * (5 - len(parts))
    return raw_record(
        email,
        block,
        email_password=_clean_password(fields[1]),
        auxiliary_email=fields[2],
        auxiliary_email_password=_clean_password(fields[3]),
        two_fa_code=fields[4],
    )


def _acceptable_near_password(candidate: str) -> bool:
    return (
        len(candidate) >= MIN_NEAR_PASSWORD_LENGTH
        and not any(part in candidate for part in _NOT_PASSWORD_PARTS)
        and not candidate.endswith((":", "："))
        and candidate.lower() not in TWO_FA_INDICATORS
        and not is_country_or_location_word(candidate)
        and not is_api_key_token(candidate)
    )


def extract_password(block: str, email: str) -> str:
    labelled = _PASSWORD_GMAIL_RE.search(block)
    if labelled:
        return labelled.group(1).strip()

    index = block.find(email)
    if index == -1:
        return ""
    after = block[index + len(email):]

    window = after[:PASSWORD_WINDOW]
    for pattern in _NEAR_PASSWORD_PATTERNS:
        m = pattern.search(window)
        if m and _acceptable_near_password(m.group(1).strip()):
            return m.group(1).strip()

    for token in _TOKEN_SPLIT_RE.split(after):
        if (
            "@" in token
            or len(token) < MIN_SCANNED_PASSWORD_LENGTH
            or _CHINESE_LABEL_RE.match(token)
            or token.endswith((":", "："))
            or is_country_or_location_word(token)
            or is_api_key_token(token)
        ):
            continue
        return token
    return ""


def extract_two_fa(block: str) -> str:
    labelled = _TWO_FA_GMAIL_RE.search(block)
    if labelled:
        return labelled.group(1).strip()

    m = _TWO_FA_LABEL_RE.search(block)
    if m and m.group(1).strip():
        return " ".join(m.group(1).split()[:TWO_FA_MAX_WORDS])

    m = _RECOVERY_GROUPS_RE.search(block)
    if m:
        return " ".join(m.group(1).split())

    lines = [line.strip() for line in block.split("\n")]
    for i, line in enumerate(lines):
        if not _TOTP_SECRET_RE.match(line):
            continue
        nearby = lines[max(0, i - TOTP_EMAIL_DISTANCE):i]
        if any("@" in prev for prev in nearby):
            return line
    return ""


def extract_account_type(block: str) -> str:
    m = _ACCOUNT_TYPE_LABEL_RE.search(block)
    return m.group(1).strip() if m else ""


def extract_date(block: str) -> str:
    """First ``YYYY-M-D`` / ``YYYY/M/D`` date as ISO, or ``""``."""
    for m in _DATE_RE.finditer(block):
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3))).isoformat()
        except ValueError:
            continue
    return ""


# ---------------------------------------------------------------------------
# Block / grammar entry points
# ---------------------------------------------------------------------------

def parse_block(block: str) -> Optional[dict]:
    record = parse_triple_dash(block) if "---" in block else None

    if record is None:
        emails = list(dict.fromkeys(find_all_emails(block)))
        if not emails:
            return None
        email = emails[0]
        aux = emails[1] if len(emails) > 1 else ""
        record = raw_record(
            email,
            block,
            email_password=extract_password(block, email),
            auxiliary_email=aux,
            auxiliary_email_password=extract_password(block, aux) if aux else "",
            two_fa_code=extract_two_fa(block),
        )

    record["account_key"] = ",".join(find_api_keys(block))
    record["account_type"] = extract_account_type(block)
    record["storage_date"] = extract_date(block)
    return record


def parse_free_form(text: str) -> list[dict]:
    records = []
    for block in split_into_blocks(text):
        record = parse_block(block)
        if record is None:
            logger.debug("[FREE_FORM] No email in block: %r", block[:40])
            continue
        logger.debug("[FREE_FORM] %s / %s", record["email"], mask_secret(record["email_password"]))
        records.append(record)
    return records
