"""
Chat-log excerpts.

Accounts pasted out of a messenger conversation: speaker names and
timestamps around the data, fixed seller templates, and the habit of
putting the email on one line and the password on the next. Lines are read
one at a time; noise lines are skipped.

Templates recognised:

    GCP: user@gmail.com:pw 2fa:abcd efgh
    Gcp 300$: user@gmail.comPassword amail: pw Gmail: abcd efgh fp: perú
    Gcp 300$: user@gmail.comPassword Gmail: pw
    2fa Gmail: abcd efgh                    (continuation of the line above)
    user@gmail.com                          (email line, password line next,
    Pass99@@ukraine ip                       optional 辅助邮箱/backup line)
    user@gmail.com: pw
    user@gmail.comPass99@@ukraine ip        (email glued to password)
    user@gmail.com pw [2fa...]
"""

from __future__ import annotations

import logging
import re

from .format_detector import (
    EMAIL_COLON_RE,
    GCP_COMPOSITE_RE,
    GCP_LINE_RE,
    GCP_STANDARD_RE,
    TWO_FA_GMAIL_RE,
    chat_template_kind,
    is_aux_line,
    is_bare_email_line,
    is_chat_noise_line,
    split_lines,
)
from .records import raw_record
from .token_classifier import (
    contains_email,
    find_api_keys,
    find_email,
    is_api_key_token,
    is_country_or_location_word,
    is_email,
    is_password_label,
    mask_secret,
    split_glued_email,
)

logger = logging.getLogger(__name__)

GCP_ACCOUNT_TYPE = "GCP300"
JOINED_PASSWORD_MARK = "@@"

# "NAME, [2025/8/24 12:53] " in front of the message body
_SPEAKER_PREFIX_RE = re.compile(r"^[^\[\n]*\[\d{4}[/\-]\d{1,2}[/\-]\d{1,2}[^\]]*\]\s*")
_REGION_SUFFIX_RE = re.compile(r"\s*fp?:\s*perú?$", re.IGNORECASE)


def password_from(text: str) -> str:
    """First password-like token of ``text``.

    A token joined with ``@@`` (``Pass99@@ukraine``) is a whole password even
    when the part after ``@@`` is a location word; a separate location token
    is metadata and skipped.
    """
    tokens = text.split()
    for token in tokens:
        if JOINED_PASSWORD_MARK in token:
            return token
    for token in tokens:
        if is_password_label(token) or is_country_or_location_word(token) or is_api_key_token(token):
            continue
        return token
    return ""


def _two_fa_tail(tokens: list[str]) -> str:
    kept = [t for t in tokens if not is_country_or_location_word(t) and not is_api_key_token(t)]
    return " ".join(kept)


def _gcp_record(email: str, password: str, two_fa: str, source: str) -> dict:
    logger.debug("[CHAT] GCP template %s / %s", email, mask_secret(password))
    return raw_record(
        email,
        source,
        email_password=password,
        two_fa_code=two_fa,
        account_type=GCP_ACCOUNT_TYPE,
    )


def _parse_template_line(line: str, kind: str) -> list[dict]:
    """Single-line templates that carry the whole account."""
    if kind == "email_colon":
        m = EMAIL_COLON_RE.match(line)
        rest = m.group(2)
        return [raw_record(
            m.group(1),
            line,
            email_password=password_from(rest),
            account_key=",".join(find_api_keys(rest)),
        )]

    if kind == "glued":
        email, rest = split_glued_email(line)
        password = password_from(rest)
        return [raw_record(email, line, email_password=password)] if password else []

    if kind == "email_tokens":
        tokens = line.split()
        return [raw_record(
            tokens[0],
            line,
            email_password=tokens[1],
            two_fa_code=_two_fa_tail(tokens[2:]),
            account_key=",".join(t for t in tokens[2:] if is_api_key_token(t)),
        )]
    return []


def parse_chat_log(text: str) -> list[dict]:
    lines = [_SPEAKER_PREFIX_RE.sub("", line) for line in split_lines(text)]
    lines = [line for line in lines if line]

    records: list[dict] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if is_chat_noise_line(line):
            logger.debug("[CHAT] Skipping noise line: %r", line)
            i += 1
            continue

        kind = chat_template_kind(line)

        if kind == "gcp":
            m = GCP_LINE_RE.match(line)
            records.append(_gcp_record(m.group(1), m.group(2), m.group(3).strip(), line))
            i += 1
            continue

        if kind == "gcp_composite":
            m = GCP_COMPOSITE_RE.search(line)
            two_fa = _REGION_SUFFIX_RE.sub("", m.group(3)).strip()
            records.append(_gcp_record(m.group(1), m.group(2), two_fa, line))
            i += 1
            continue

        if kind == "gcp_standard":
            m = GCP_STANDARD_RE.search(line)
            two_fa = ""
            if i + 1 < len(lines):
                follow = TWO_FA_GMAIL_RE.search(lines[i + 1])
                if follow:
                    two_fa = follow.group(1).strip()
                    i += 1
            records.append(_gcp_record(m.group(1), m.group(2).strip(), two_fa, line))
            i += 1
            continue

        # email on this line, password on the next
        if (
            is_bare_email_line(line)
            and not is_aux_line(line)
            and i + 1 < len(lines)
            and not contains_email(lines[i + 1])
            and not is_chat_noise_line(lines[i + 1])
        ):
            password_line = lines[i + 1]
            password = password_from(password_line)
            if password:
                aux = ""
                if i + 2 < len(lines) and is_aux_line(lines[i + 2]):
                    aux = find_email(lines[i + 2])
                records.append(raw_record(
                    find_email(line),
                    f"{line} {password_line}",
                    email_password=password,
                    auxiliary_email=aux,
                    account_key=",".join(find_api_keys(password_line)),
                ))
                logger.debug("[CHAT] %s / %s (aux=%s)", find_email(line), mask_secret(password), aux or "-")
                i += 3 if aux else 2
                continue

        if kind:
            parsed = _parse_template_line(line, kind)
            for record in parsed:
                logger.debug("[CHAT] %s / %s", record["email"], mask_secret(record.get("email_password", "")))
            records.extend(parsed)
        elif is_email(line):
            logger.debug("[CHAT] Email line with no password after it: %r", line)
        i += 1
    return records
