"""
Token classifier for pasted credential text.

Every function here is a pure predicate or extractor over a single token or
line. Nothing raises: non-string or malformed input gets the negative answer
(``False``, ``""`` or ``[]``).

Classification vocabulary:
1. Email        - ``local@domain.tld``
2. API key      - ``AIzaSy`` + 33 base62/``_-`` characters (39 total, exact)
3. Location     - country/region names and the literal ``ip``
4. Disposable   - email on a known throwaway-mailbox domain
5. Label        - ``password:``, ``密码:`` and friends, never a value
6. Other        - everything else (password candidates)
"""

from __future__ import annotations

import re
from typing import Any

# ---------------------------------------------------------------------------
# Emails
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"

_EMAIL_FULL_RE = re.compile(rf"^{EMAIL_PATTERN}$")
_EMAIL_SEARCH_RE = re.compile(EMAIL_PATTERN)

# TLDs tried first when an email is glued to the text that follows it
# ("user@gmail.comPass123"), so the password's letters are not read as TLD.
_GLUE_TLDS = (
    "com", "net", "org", "edu", "gov", "info", "biz", "io", "co",
    "ru", "cn", "de", "uk", "fr", "jp", "br", "in", "me", "us", "ua",
)
_GLUE_TLDS_LONGEST_FIRST = tuple(sorted(_GLUE_TLDS, key=len, reverse=True))

# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------

API_KEY_PREFIX = "AIzaSy"
API_KEY_LENGTH = 39

_API_KEY_FULL_RE = re.compile(r"^AIzaSy[A-Za-z0-9_-]{33}$")
# Bounded on both sides: a longer run never yields a 39-char "prefix" key.
_API_KEY_SEARCH_RE = re.compile(r"(?<![A-Za-z0-9_-])AIzaSy[A-Za-z0-9_-]{33}(?![A-Za-z0-9_-])")

# ---------------------------------------------------------------------------
# Gazetteers
# ---------------------------------------------------------------------------

_LOCATION_WORDS = frozenset({
    "ip",
    "us", "usa", "uk", "ukraine", "china", "japan", "korea", "india", "russia",
    "germany", "france", "canada", "australia", "brazil", "mexico",
    "spain", "italy", "turkey", "poland", "netherlands", "belgium",
    "sweden", "norway", "finland", "denmark", "switzerland", "austria",
    "portugal", "greece", "czech", "hungary", "romania", "bulgaria",
    "croatia", "serbia", "slovakia", "slovenia", "estonia", "latvia",
    "lithuania", "belarus", "moldova", "armenia", "georgia", "azerbaijan",
    "kazakhstan", "uzbekistan", "kyrgyzstan", "tajikistan", "turkmenistan",
    "afghanistan", "pakistan", "bangladesh", "sri lanka", "nepal", "bhutan",
    "maldives", "thailand", "vietnam", "cambodia", "laos", "myanmar",
    "malaysia", "singapore", "indonesia", "philippines", "brunei",
    "mongolia", "north korea", "south korea", "taiwan", "hong kong",
    "macau", "tibet", "xinjiang", "inner mongolia", "peru", "perú",
})

# Chinese administrative suffixes: country, province, city.
_LOCATION_SUFFIX_CHARS = ("国", "省", "市")

_DISPOSABLE_DOMAINS = (
    "tmpmail.org", "teml.net", "moakt.cc", "guerrillamail.com",
    "10minutemail.com", "mailinator.com", "temp-mail.org",
    "throwaway.email", "getnada.com", "maildrop.cc",
    "tmpbox.net", "tempr.email", "yopmail.com",
)

_ACCOUNT_TYPE_BY_DOMAIN: list[tuple[tuple[str, ...], str]] = [
    (("gmail",), "Gmail"),
    (("outlook", "hotmail"), "Outlook"),
    (("yahoo",), "Yahoo"),
    (("icloud",), "iCloud"),
]

OTHER_MAILBOX = "其他邮箱"

# Tokens that introduce a value rather than being one.
PASSWORD_LABELS = frozenset({
    "密码:", "密码：", "password:", "Password:", "pass:", "pwd:",
})

_COUNTRY_CODE_RE = re.compile(r"^[a-z]{2,3}$", re.IGNORECASE)

_PASSWORD_CHARS_RE = re.compile(r"""^[a-zA-Z0-9!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]+$""")
_SYMBOL_RE = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]""")

SHARED_PASSWORD_MIN_LENGTH = 6


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def is_email(token: Any) -> bool:
    """True when the whole (stripped) token is an email address."""
    if not isinstance(token, str):
        return False
    return bool(_EMAIL_FULL_RE.match(token.strip()))


def contains_email(text: Any) -> bool:
    """True when an email address appears anywhere in ``text``."""
    if not isinstance(text, str):
        return False
    return bool(_EMAIL_SEARCH_RE.search(text))


def find_email(text: Any) -> str:
    """First email address found in ``text``, or ``""``."""
    if not isinstance(text, str):
        return ""
    m = _EMAIL_SEARCH_RE.search(text)
    return m.group(0) if m else ""


def find_all_emails(text: Any) -> list[str]:
    """All email addresses in ``text``, in order of appearance (duplicates kept)."""
    if not isinstance(text, str):
        return []
    return _EMAIL_SEARCH_RE.findall(text)


def split_glued_email(text: Any) -> tuple[str, str]:
    """Split ``user@gmail.comPass1`` into ``("user@gmail.com", "Pass1")``.

    Returns ``("", "")`` when the text does not start with an email that is
    immediately followed by an alphanumeric character.
    """
    if not isinstance(text, str):
        return "", ""
    stripped = text.strip()
    m = _EMAIL_SEARCH_RE.match(stripped)
    if not m:
        return "", ""
    email = m.group(0)

    # "user@gmail.comPass": the greedy TLD swallowed the password's letters.
    # Only an uppercase letter marks the cut, so "x.design" stays a domain.
    label = email.rsplit(".", 1)[1]
    if label.lower() not in _GLUE_TLDS:
        for tld in _GLUE_TLDS_LONGEST_FIRST:
            rest = label[len(tld):]
            if label.lower().startswith(tld) and rest[:1].isupper():
                cut = len(email) - len(rest)
                return stripped[:cut], stripped[cut:]

    # "user@gmail.com123": the TLD already stops at the digit
    if m.end() < len(stripped) and stripped[m.end()].isalnum():
        return email, stripped[m.end():]
    return "", ""


def is_api_key_token(token: Any) -> bool:
    """Exact API-key shape: ``AIzaSy`` prefix, 39 characters total."""
    if not isinstance(token, str):
        return False
    return bool(_API_KEY_FULL_RE.match(token.strip()))


def find_api_keys(text: Any) -> list[str]:
    """Every standalone API-key-shaped token in ``text``."""
    if not isinstance(text, str):
        return []
    return _API_KEY_SEARCH_RE.findall(text)


def is_api_key_line(line: Any) -> bool:
    """A line whose every whitespace token is an API key."""
    if not isinstance(line, str):
        return False
    tokens = line.split()
    return bool(tokens) and all(is_api_key_token(t) for t in tokens)


def is_country_or_location_word(token: Any) -> bool:
    """Geo/IP annotation such as ``turkey``, ``ip`` or ``广东省``."""
    if not isinstance(token, str) or not token.strip():
        return False
    lowered = token.strip().lower()
    if lowered in _LOCATION_WORDS:
        return True
    return any(ch in lowered for ch in _LOCATION_SUFFIX_CHARS)


def is_country_code(token: Any) -> bool:
    """Bare 2-3 letter code such as ``ar`` or ``usa`` trailing an account group."""
    if not isinstance(token, str):
        return False
    return bool(_COUNTRY_CODE_RE.match(token.strip()))


def is_temporary_email_domain(email: Any) -> bool:
    """True when the email's domain belongs to a disposable-mailbox provider."""
    if not isinstance(email, str) or "@" not in email:
        return False
    domain = email.strip().lower().rsplit("@", 1)[1]
    return any(temp in domain for temp in _DISPOSABLE_DOMAINS)


def is_password_label(token: Any) -> bool:
    if not isinstance(token, str):
        return False
    return token in PASSWORD_LABELS


def looks_like_password(line: Any) -> bool:
    """Single password-shaped line: no spaces, length >= 6, letters plus digits or symbols."""
    if not isinstance(line, str):
        return False
    candidate = line.strip()
    if len(candidate) < SHARED_PASSWORD_MIN_LENGTH or not _PASSWORD_CHARS_RE.match(candidate):
        return False
    if not re.search(r"[a-zA-Z]", candidate):
        return False
    return bool(re.search(r"[0-9]", candidate) or _SYMBOL_RE.search(candidate))


def guess_account_type(email: Any) -> str:
    """Infer the mailbox family from the email domain.

    Returns ``""`` when there is no domain to look at, and the
    :data:`OTHER_MAILBOX` sentinel for domains outside the known families.
    """
    if not isinstance(email, str) or "@" not in email:
        return ""
    domain = email.strip().lower().rsplit("@", 1)[1]
    if not domain:
        return ""
    for needles, account_type in _ACCOUNT_TYPE_BY_DOMAIN:
        if any(n in domain for n in needles):
            return account_type
    return OTHER_MAILBOX


def mask_secret(value: Any) -> str:
    """Log-safe rendering of a password or code: first three characters, then ``***``."""
    if not isinstance(value, str) or not value:
        return ""
    return f"{value[:3]}***"
