"""
Grammars where each account spans a fixed group of lines or tokens.

three_line:       email / password / disposable aux email, repeated
shared_password:  several email lines, then one password for all of them
multi_account:    ``email pw aux_email [aux_pw] [cc]`` groups, several per line
"""

from __future__ import annotations

import logging

from .format_detector import shared_password_block, split_lines, three_line_groups
from .records import raw_record
from .token_classifier import (
    contains_email,
    find_email,
    is_country_code,
    is_country_or_location_word,
    is_email,
    mask_secret,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Three-line groups
# ---------------------------------------------------------------------------

def parse_three_line(text: str) -> list[dict]:
    """Triples become records with an aux email; stray email/password pairs between them too."""
    lines = split_lines(text)
    triples = {start: (email, password, aux) for start, email, password, aux in three_line_groups(lines)}

    records = []
    i = 0
    while i < len(lines):
        if i in triples:
            email_line, password, aux_line = triples[i]
            records.append(raw_record(
                find_email(email_line),
                f"{email_line} / {aux_line}",
                email_password=password,
                auxiliary_email=find_email(aux_line),
            ))
            i += 3
        elif i + 1 < len(lines) and contains_email(lines[i]) and not contains_email(lines[i + 1]):
            records.append(raw_record(find_email(lines[i]), lines[i], email_password=lines[i + 1]))
            i += 2
        else:
            logger.debug("[THREE_LINE] Skipping line %d: %r", i, lines[i])
            i += 1

    for record in records:
        logger.debug("[THREE_LINE] %s / %s", record["email"], mask_secret(record["email_password"]))
    return records


# ---------------------------------------------------------------------------
# Shared password
# ---------------------------------------------------------------------------

def _location_note(lines: list[str]) -> str:
    info = " ".join(lines)
    if any(is_country_or_location_word(token) for token in info.split()):
        return info
    return ""


def parse_shared_password(text: str) -> list[dict]:
    lines = split_lines(text)
    block = shared_password_block(lines)
    if block is None:
        return []
    emails, password, password_index = block

    note = _location_note(lines[password_index + 1:])
    source = note or f"{len(emails)} accounts sharing one password"
    logger.debug("[SHARED] %d emails share %s", len(emails), mask_secret(password))
    return [raw_record(email, source, email_password=password) for email in emails]


# ---------------------------------------------------------------------------
# Multi-account groups
# ---------------------------------------------------------------------------

def _closes_group(tokens: list[str], index: int) -> bool:
    return index + 1 >= len(tokens) or is_email(tokens[index + 1])


def walk_account_groups(tokens: list[str]) -> list[dict]:
    """Read ``email pw aux_email [aux_pw] [country]`` groups from a token stream."""
    records = []
    i = 0
    while i < len(tokens):
        if not (
            i + 2 < len(tokens)
            and is_email(tokens[i])
            and not is_email(tokens[i + 1])
            and is_email(tokens[i + 2])
        ):
            i += 1
            continue

        email, password, aux = tokens[i:i + 3]
        aux_password = country = ""
        j = i + 3
        if j < len(tokens) and not is_email(tokens[j]):
            if is_country_code(tokens[j]) and _closes_group(tokens, j):
                country = tokens[j]
            else:
                aux_password = tokens[j]
                if j + 1 < len(tokens) and is_country_code(tokens[j + 1]) and _closes_group(tokens, j + 1):
                    j += 1
                    country = tokens[j]
            j += 1

        source = " ".join(tokens[i:j])
        logger.debug("[MULTI] %s / %s (aux=%s, country=%s)", email, mask_secret(password), aux, country or "-")
        records.append(raw_record(
            email,
            source,
            email_password=password,
            auxiliary_email=aux,
            auxiliary_email_password=aux_password,
        ))
        i = j
    return records


def parse_multi_account(text: str) -> list[dict]:
    records = [record for line in split_lines(text) for record in walk_account_groups(line.split())]
    if not records:
        # groups wrapped across lines
        records = walk_account_groups(text.split())
    return records
