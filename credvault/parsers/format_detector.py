"""Format detection for pasted credential text.

Each ``detect_*`` predicate looks at the *whole* input and answers whether one
layout convention (a "grammar") applies. The extraction engine evaluates them
in this fixed priority order and the first match wins:

1. compact           - one or two accounts in a handful of tokens
2. csv               - header + rows, or headerless email-first rows
3. three_line        - email / password / disposable-mailbox triples
4. csv_api_keys      - CSV rows each followed by API-key lines
5. account_api_keys  - one account line followed only by API-key lines
6. chat_log          - pasted chat excerpts and fixed chat templates
7. shared_password   - several email lines sharing one password line
8. multi_account     - flat ``email pw aux_email aux_pw [cc]`` groups
9. free_form         - fallback, always matches

The structural scanners used by the detectors (three-line groups, CSV/key
groups, line pairs...) are public so the parsers read exactly the structure
that was detected instead of re-deriving it.
"""

from __future__ import annotations

import csv
import re
from typing import Any, Optional

from .token_classifier import (
    EMAIL_PATTERN,
    contains_email,
    find_all_emails,
    find_email,
    is_api_key_line,
    is_email,
    is_temporary_email_domain,
    looks_like_password,
    split_glued_email,
)

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

COMPACT_MIN_TOKENS = 2
COMPACT_MAX_TOKENS = 8
COMPACT_MAX_LINES = 10
COMPACT_MAX_EMAILS = 2

CSV_MIN_FIELDS = 3
CSV_SINGLE_ROW_MIN_FIELDS = 2
CSV_MIN_PASSWORD_LENGTH = 3
CSV_DENSE_COMMAS = 3
CSV_EMAIL_ROW_COMMAS = 2

THREE_LINE_MIN_GROUPS = 2
THREE_FIELD_MIN_LINES = 2
THREE_FIELD_MIN_PASSWORD_LENGTH = 4
LINE_PAIR_MIN_PAIRS = 2

MULTI_ACCOUNT_MIN_EMAILS = 4
MULTI_ACCOUNT_EMAIL_GAP = 2

SHARED_PASSWORD_MIN_EMAILS = 2

# ---------------------------------------------------------------------------
# Vocabularies and patterns
# ---------------------------------------------------------------------------

CSV_HEADER_KEYWORDS = ("email", "password", "totp", "backup_email", "cpny")

DASH_SEPARATOR = "——"
PIPE_SEPARATOR = "|"

_COMPACT_DISQUALIFIERS = ("---", "2fa", "gmail:", "gcp:", "google cloud")
_THREE_LINE_VETO = ("2fa:", "totp:", "两步验证", "验证码")

CHAT_NOISE_MARKERS = ("google cloud", "got gcp")
AUX_LINE_MARKERS = ("辅助邮箱", "备用邮箱", "auxiliary", "backup")
_BARE_EMAIL_LABELS = frozenset({"", "email", "e-mail", "mail", "邮箱", "账号", "account"})

_BRACKET_TIMESTAMP_RE = re.compile(r"\[\d{4}[/\-]\d{1,2}")
TIMESTAMP_RE = re.compile(r"\[?\d{4}[/\-]\d{1,2}[/\-]\d{1,2}")
CLOCK_LINE_RE = re.compile(r"^\d{2}:\d{2}$")
_PIPE_SPACING_RE = re.compile(r"\s*\|\s*")

GCP_LINE_RE = re.compile(rf"^GCP:\s*({EMAIL_PATTERN}):(\S+)\s+2fa:(.+)$")
GCP_COMPOSITE_RE = re.compile(
    rf"GC[Pp]\s*300\$:\s*({EMAIL_PATTERN})Password\s+amail:\s*(\S+)\s+Gmail:\s*([^:]+?)(?:\s*fp?:\s*perú?)?$",
    re.IGNORECASE,
)
GCP_STANDARD_RE = re.compile(
    rf"GC[Pp]\s*300\$:\s*({EMAIL_PATTERN})Password\s+Gmail:\s*(.+)",
    re.IGNORECASE,
)
TWO_FA_GMAIL_RE = re.compile(r"2fa\s+Gmail:\s*(.+)", re.IGNORECASE)
EMAIL_COLON_RE = re.compile(rf"^({EMAIL_PATTERN}):\s*(.+)$")


# ---------------------------------------------------------------------------
# Line / token helpers
# ---------------------------------------------------------------------------

def split_lines(text: str) -> list[str]:
    """Non-empty, stripped lines."""
    return [line.strip() for line in text.split("\n") if line.strip()]


def csv_fields(line: str) -> list[str]:
    """Comma-split fields, honouring double quotes."""
    return [f.strip() for f in next(csv.reader([line], skipinitialspace=True), [])]


def is_csv_like(text: str) -> bool:
    """Comma density typical of CSV rows: >=3 commas, or >=2 next to an email."""
    for line in split_lines(text):
        commas = line.count(",")
        if commas >= CSV_DENSE_COMMAS:
            return True
        if commas >= CSV_EMAIL_ROW_COMMAS and contains_email(line):
            return True
    return False


def count_token_emails(tokens: list[str]) -> int:
    """Emails in a token list; pipe-joined tokens are counted part by part."""
    count = 0
    for token in tokens:
        if PIPE_SEPARATOR in token:
            count += sum(1 for part in token.split(PIPE_SEPARATOR) if contains_email(part))
        elif contains_email(token):
            count += 1
    return count


def three_field_line(line: str) -> Optional[tuple[str, str, str]]:
    """``email password aux_email`` (space or pipe separated) -> its three fields."""
    if PIPE_SEPARATOR in line:
        parts = [p.strip() for p in line.split(PIPE_SEPARATOR) if p.strip()]
        if len(parts) == 3 and is_email(parts[0]) and is_email(parts[2]):
            return parts[0], parts[1], parts[2]
        return None

    tokens = line.split()
    if (
        len(tokens) == 3
        and is_email(tokens[0])
        and is_email(tokens[2])
        and not is_email(tokens[1])
        and len(tokens[1]) >= THREE_FIELD_MIN_PASSWORD_LENGTH
    ):
        return tokens[0], tokens[1], tokens[2]
    return None


def is_multi_line_three_field(lines: list[str]) -> bool:
    if len(lines) < THREE_FIELD_MIN_LINES:
        return False
    return sum(1 for line in lines if three_field_line(line)) >= THREE_FIELD_MIN_LINES


def line_pairs(lines: list[str]) -> list[tuple[str, str, str, str]]:
    """``email password`` / ``aux_email`` line pairs -> (email, password, aux, source)."""
    if len(lines) < 2 * LINE_PAIR_MIN_PAIRS or len(lines) % 2 != 0:
        return []

    pairs: list[tuple[str, str, str, str]] = []
    for i in range(0, len(lines), 2):
        first = lines[i].split()
        second = lines[i + 1].split()
        if len(first) != 2 or not is_email(first[0]) or is_email(first[1]):
            continue
        if len(second) != 1 or not is_email(second[0]):
            continue
        pairs.append((first[0], first[1], second[0], f"{lines[i]} + {lines[i + 1]}"))
    return pairs


def pipe_segments(text: str) -> list[str]:
    """Whitespace segments with spacing around ``|`` removed.

    A line that begins with ``|`` continues the line above it.
    """
    joined: list[str] = []
    for line in split_lines(text):
        if line.startswith(PIPE_SEPARATOR) and joined:
            joined[-1] += line
        else:
            joined.append(line)
    return " ".join(_PIPE_SPACING_RE.sub(PIPE_SEPARATOR, line) for line in joined).split()


def has_delimited_account(text: str) -> bool:
    """Some ``email|...`` segment or ``email——...`` line, email in the first field."""
    if PIPE_SEPARATOR in text:
        for segment in pipe_segments(text):
            parts = segment.split(PIPE_SEPARATOR)
            if len(parts) >= 2 and is_email(parts[0].strip()):
                return True
    if DASH_SEPARATOR in text:
        for line in split_lines(text):
            parts = line.split(DASH_SEPARATOR)
            if len(parts) >= 2 and is_email(parts[0].strip()):
                return True
    return False


def is_line_pair(lines: list[str]) -> bool:
    return len(line_pairs(lines)) >= LINE_PAIR_MIN_PAIRS


def is_single_csv_row(line: str) -> bool:
    """Headerless row: email in field 0 and a password-length field 1."""
    if "," not in line:
        return False
    fields = csv_fields(line)
    return (
        len(fields) >= CSV_SINGLE_ROW_MIN_FIELDS
        and is_email(fields[0])
        and len(fields[1]) >= CSV_MIN_PASSWORD_LENGTH
    )


def has_csv_header(lines: list[str]) -> bool:
    if len(lines) < 2:
        return False
    header = lines[0].lower()
    if contains_email(lines[0]):
        return False
    if not any(keyword in header for keyword in CSV_HEADER_KEYWORDS):
        return False
    if "," not in lines[0] or "," not in lines[1]:
        return False
    fields = csv_fields(lines[1])
    return len(fields) >= CSV_MIN_FIELDS and any(contains_email(f) for f in fields)


def three_line_groups(lines: list[str]) -> list[tuple[int, str, str, str]]:
    """``[email, non-email, disposable email]`` runs -> (start index, email, password, aux)."""
    groups: list[tuple[int, str, str, str]] = []
    i = 0
    while i + 2 < len(lines):
        first, middle, third = lines[i], lines[i + 1], lines[i + 2]
        if (
            contains_email(first)
            and not contains_email(middle)
            and contains_email(third)
            and is_temporary_email_domain(find_email(third))
        ):
            groups.append((i, first, middle, third))
            i += 3
        else:
            i += 1
    return groups


def is_csv_row_line(line: str) -> bool:
    return "," in line and contains_email(line)


def csv_key_groups(lines: list[str]) -> list[tuple[str, list[str]]]:
    """CSV rows each followed by >=1 line made only of API keys."""
    groups: list[tuple[str, list[str]]] = []
    i = 0
    while i < len(lines):
        if not is_csv_row_line(lines[i]):
            i += 1
            continue
        row = lines[i]
        key_lines: list[str] = []
        j = i + 1
        while j < len(lines) and is_api_key_line(lines[j]):
            key_lines.append(lines[j])
            j += 1
        if key_lines:
            groups.append((row, key_lines))
        i = j
    return groups


def is_chat_noise_line(line: str) -> bool:
    """Timestamp, clock or narration lines inside a pasted chat."""
    if TIMESTAMP_RE.search(line) and "@" not in line:
        return True
    if CLOCK_LINE_RE.match(line):
        return True
    return any(marker in line for marker in CHAT_NOISE_MARKERS)


def is_aux_line(line: str) -> bool:
    lowered = line.lower()
    return any(marker in lowered for marker in AUX_LINE_MARKERS)


def is_bare_email_line(line: str) -> bool:
    """A line holding one email and at most a label such as ``邮箱:``."""
    email = find_email(line)
    if not email:
        return False
    remainder = line.replace(email, "", 1).strip(" \t:：-|,，").lower()
    return remainder in _BARE_EMAIL_LABELS


def chat_template_kind(line: str) -> Optional[str]:
    """Name of the fixed chat template ``line`` follows, if any."""
    if line.startswith("GCP:") and GCP_LINE_RE.match(line):
        return "gcp"
    if GCP_COMPOSITE_RE.search(line):
        return "gcp_composite"
    if GCP_STANDARD_RE.search(line):
        return "gcp_standard"
    if EMAIL_COLON_RE.match(line):
        return "email_colon"
    if split_glued_email(line)[0]:
        return "glued"
    tokens = line.split()
    if 2 <= len(tokens) <= 3 and is_email(tokens[0]) and len(find_all_emails(line)) == 1:
        return "email_tokens"
    return None


def shared_password_block(lines: list[str]) -> Optional[tuple[list[str], str, int]]:
    """Consecutive bare email lines closed by one password line.

    Returns ``(emails, password, password_line_index)`` or ``None``.
    """
    start = next((i for i, line in enumerate(lines) if is_email(line)), None)
    if start is None:
        return None
    emails: list[str] = []
    i = start
    while i < len(lines) and is_email(lines[i]):
        emails.append(lines[i])
        i += 1
    if len(emails) < SHARED_PASSWORD_MIN_EMAILS or i >= len(lines):
        return None
    if not looks_like_password(lines[i]):
        return None
    return emails, lines[i], i


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------

def detect_compact(text: str) -> bool:
    lines = split_lines(text)
    if is_multi_line_three_field(lines) or is_line_pair(lines):
        return True

    tokens = text.split()
    emails = count_token_emails(tokens)
    if emails == 0:
        return False

    lowered = text.lower()
    if any(marker in lowered for marker in _COMPACT_DISQUALIFIERS):
        return False
    if _BRACKET_TIMESTAMP_RE.search(text):
        return False
    if len(lines) > COMPACT_MAX_LINES or is_csv_like(text):
        return False

    # one delimited segment can hold a whole account, so no lower token bound
    if has_delimited_account(text):
        return len(pipe_segments(text)) <= COMPACT_MAX_TOKENS
    return COMPACT_MIN_TOKENS <= len(tokens) <= COMPACT_MAX_TOKENS and emails <= COMPACT_MAX_EMAILS


def detect_csv(text: str) -> bool:
    lines = split_lines(text)
    if not lines:
        return False
    if has_csv_header(lines):
        return True
    return all(is_single_csv_row(line) for line in lines)


def detect_three_line(text: str) -> bool:
    lines = split_lines(text)
    if len(lines) < 3:
        return False
    lowered = text.lower()
    if any(marker in lowered for marker in _THREE_LINE_VETO):
        return False
    return len(three_line_groups(lines)) >= THREE_LINE_MIN_GROUPS


def detect_csv_api_keys(text: str) -> bool:
    lines = split_lines(text)
    if len(lines) < 2:
        return False
    return bool(csv_key_groups(lines))


def detect_account_api_keys(text: str) -> bool:
    lines = split_lines(text)
    if len(lines) < 2:
        return False
    first = lines[0].split()
    if len(first) < 2 or not any(contains_email(t) for t in first):
        return False
    return all(is_api_key_line(line) for line in lines[1:])


def detect_chat_log(text: str) -> bool:
    lines = split_lines(text)
    any_email = contains_email(text)
    for i, line in enumerate(lines):
        if chat_template_kind(line):
            return True
        if any_email and _BRACKET_TIMESTAMP_RE.search(line):
            return True
        if (
            is_bare_email_line(line)
            and not is_aux_line(line)
            and i + 1 < len(lines)
            and not contains_email(lines[i + 1])
            and not is_chat_noise_line(lines[i + 1])
            and not (i > 0 and is_bare_email_line(lines[i - 1]))
        ):
            return True
    return False


def detect_shared_password(text: str) -> bool:
    return shared_password_block(split_lines(text)) is not None


def detect_multi_account(text: str) -> bool:
    tokens = text.split()
    positions = [i for i, token in enumerate(tokens) if contains_email(token)]
    if len(positions) < MULTI_ACCOUNT_MIN_EMAILS:
        return False
    for k in range(0, len(positions) - 1, 2):
        if positions[k + 1] - positions[k] == MULTI_ACCOUNT_EMAIL_GAP:
            return True
    return False


def detect_free_form(text: Any) -> bool:
    return True
