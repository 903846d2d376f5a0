"""
Compact account parser.

Handles the short layouts people type by hand, one or two accounts at a time:

    test@gmail.com password123
    a@gmail.com pw1 b@hotmail.com pw2
    a@gmail.com pw1 aux@teml.net          (one per line, >=2 lines)
    a@gmail.com|pw1|aux@teml.net
    a@gmail.com pw1                       (line pairs)
    aux@teml.net
    a@gmail.com——pw1——aux@teml.net

Also reads the "account line followed by API-key lines" grammar, whose first
line is exactly a compact account line.
"""

from __future__ import annotations

import logging

from .format_detector import (
    DASH_SEPARATOR,
    PIPE_SEPARATOR,
    has_delimited_account,
    line_pairs,
    pipe_segments,
    split_lines,
    three_field_line,
)
from .records import raw_record
from .token_classifier import (
    find_api_keys,
    find_email,
    is_api_key_token,
    is_country_or_location_word,
    is_email,
    is_password_label,
    mask_secret,
)

logger = logging.getLogger(__name__)


def _is_label(token: str) -> bool:
    return is_password_label(token) or token.endswith(":") or token.endswith("：")


def _usable(token: str) -> bool:
    """A token that can hold a password value."""
    return not (
        find_email(token)
        or _is_label(token)
        or is_country_or_location_word(token)
        or is_api_key_token(token)
    )


# ---------------------------------------------------------------------------
# Sub-formats
# ---------------------------------------------------------------------------

def parse_three_field_lines(lines: list[str]) -> list[dict]:
    records = []
    for line in lines:
        fields = three_field_line(line)
        if fields is None:
            logger.debug("[COMPACT] Skipping line without three fields: %r", line)
            continue
        email, password, aux = fields
        records.append(raw_record(email, line, email_password=password, auxiliary_email=aux))
    return records


def parse_line_pairs(lines: list[str]) -> list[dict]:
    return [
        raw_record(email, source, email_password=password, auxiliary_email=aux)
        for email, password, aux, source in line_pairs(lines)
    ]


def parse_dash(text: str) -> list[dict]:
    """``email——password[——aux_email]``, one account per line."""
    records = []
    for line in split_lines(text):
        parts = [p.strip() for p in line.split(DASH_SEPARATOR)]
        if len(parts) < 2 or not is_email(parts[0]):
            continue
        aux = parts[2] if len(parts) >= 3 else ""
        password = parts[1] if _usable(parts[1]) else ""
        records.append(raw_record(parts[0], line, email_password=password, auxiliary_email=aux))
    return records


def _pipe_parts(segment: str) -> list[str]:
    return [p.strip() for p in segment.split(PIPE_SEPARATOR)]


def parse_pipe(text: str) -> list[dict]:
    """Pipe-joined records mixed with plain ``email pw [aux]`` runs and API keys."""
    segments = pipe_segments(text)

    records: list[dict] = []
    i = 0
    while i < len(segments):
        segment = segments[i]
        if PIPE_SEPARATOR in segment:
            parts = _pipe_parts(segment)
            if len(parts) >= 2 and is_email(parts[0]):
                rest = parts[1:]
                while rest and _is_label(rest[0]):
                    rest.pop(0)
                # "email|密码: pw": the value is the next segment
                if not rest and i + 1 < len(segments) and not find_email(_pipe_parts(segments[i + 1])[0]):
                    i += 1
                    rest = _pipe_parts(segments[i])
                password = rest[0] if rest and _usable(rest[0]) else ""
                aux = rest[1] if len(rest) >= 2 and is_email(rest[1]) else ""
                records.append(raw_record(parts[0], segment, email_password=password, auxiliary_email=aux))
            else:
                logger.debug("[COMPACT] Pipe segment without leading email: %r", segment)
        elif is_email(segment):
            password = aux = ""
            j = i + 1
            while j < len(segments) and _is_label(segments[j]):
                j += 1
            if j < len(segments) and _usable(segments[j]):
                password = segments[j]
                i = j
                if i + 1 < len(segments) and is_email(segments[i + 1]):
                    aux = segments[i + 1]
                    i += 1
            records.append(raw_record(segment, f"{segment} {password} {aux}", email_password=password, auxiliary_email=aux))
        elif is_api_key_token(segment):
            if records:
                last = records[-1]
                last["account_key"] = f"{last['account_key']},{segment}" if last.get("account_key") else segment
            else:
                logger.debug("[COMPACT] API key with no account before it")
        i += 1
    return records


def parse_token_scan(text: str) -> list[dict]:
    """Whitespace token scan for one account, optionally with an auxiliary email."""
    tokens = text.split()
    positions = [i for i, token in enumerate(tokens) if find_email(token)]
    if not positions:
        return []

    def password_after(start: int, stop: int) -> str:
        for token in tokens[start + 1:stop]:
            if _usable(token):
                return token
        return ""

    primary = positions[0]
    keys = [t for t in tokens if is_api_key_token(t)]
    source = " ".join(tokens)

    if len(positions) == 1:
        record = raw_record(
            find_email(tokens[primary]),
            source,
            email_password=password_after(primary, len(tokens)),
        )
    else:
        aux = positions[1]
        record = raw_record(
            find_email(tokens[primary]),
            source,
            email_password=password_after(primary, aux),
            auxiliary_email=find_email(tokens[aux]),
            auxiliary_email_password=password_after(aux, positions[2] if len(positions) > 2 else len(tokens)),
        )

    if keys:
        record["account_key"] = ",".join(keys)
    return [record]


# ---------------------------------------------------------------------------
# Grammar entry points
# ---------------------------------------------------------------------------

def parse_compact(text: str) -> list[dict]:
    lines = split_lines(text)

    if sum(1 for line in lines if three_field_line(line)) >= 2:
        records = parse_three_field_lines(lines)
    elif len(line_pairs(lines)) >= 2:
        records = parse_line_pairs(lines)
    elif has_delimited_account(text):
        records = parse_dash(text) if DASH_SEPARATOR in text else []
        if not records:
            records = parse_pipe(text)
    else:
        records = parse_token_scan(text)

    for record in records:
        logger.debug(
            "[COMPACT] %s / %s",
            record["email"],
            mask_secret(record.get("email_password", "")),
        )
    return records


def parse_account_api_keys(text: str) -> list[dict]:
    """First line is an account, every later line is API keys for it."""
    lines = split_lines(text)
    if not lines:
        return []
    records = parse_token_scan(lines[0])
    if not records:
        return []

    keys = [key for line in lines[1:] for key in find_api_keys(line)]
    first = records[0]
    existing = [k for k in first.get("account_key", "").split(",") if k]
    first["account_key"] = ",".join(existing + keys)
    first["notes"] = f"{lines[0]} + {len(keys)} API keys"
    logger.debug("[COMPACT] %s with %d API keys", first["email"], len(existing) + len(keys))
    return records
