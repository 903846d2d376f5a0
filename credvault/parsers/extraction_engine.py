"""Extraction engine: one dispatch loop over an ordered grammar table.

Pipeline for every call:
  1. Evaluate each grammar's detector in table order; the first match wins
  2. Run only that grammar's parser (nothing later is tried, even if it
     returns nothing)
  3. If no detector matched, run the free-form block parser
  4. Push every raw field dict through the normalizer, which drops
     candidates without a valid email

The engine keeps no state between calls and never raises: a detector that
blows up counts as "no match", a parser that blows up yields no records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional

from . import format_detector as fd
from .chat_log import parse_chat_log
from .compact import parse_account_api_keys, parse_compact
from .csv_rows import parse_csv, parse_csv_api_keys
from .free_form import parse_free_form
from .line_groups import parse_multi_account, parse_shared_password, parse_three_line
from .records import CredentialRecord, normalize_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Grammar:
    """A layout convention: a whole-input detector and the parser for it."""

    name: str
    detect: Callable[[str], bool]
    parse: Callable[[str], list[dict]]


# Priority order. Earlier entries win ties; reordering is a behaviour change.
GRAMMARS: tuple[Grammar, ...] = (
    Grammar("compact", fd.detect_compact, parse_compact),
    Grammar("csv", fd.detect_csv, parse_csv),
    Grammar("three_line", fd.detect_three_line, parse_three_line),
    Grammar("csv_api_keys", fd.detect_csv_api_keys, parse_csv_api_keys),
    Grammar("account_api_keys", fd.detect_account_api_keys, parse_account_api_keys),
    Grammar("chat_log", fd.detect_chat_log, parse_chat_log),
    Grammar("shared_password", fd.detect_shared_password, parse_shared_password),
    Grammar("multi_account", fd.detect_multi_account, parse_multi_account),
)

FALLBACK_GRAMMAR = Grammar("free_form", fd.detect_free_form, parse_free_form)


def _safe_detect(grammar: Grammar, text: str) -> bool:
    try:
        return bool(grammar.detect(text))
    except Exception:
        logger.warning("[ENGINE] Detector %s failed, treating as no match", grammar.name, exc_info=True)
        return False


def detect_grammar(raw_text: Any) -> Grammar:
    """The grammar ``extract`` would use for ``raw_text``."""
    if not isinstance(raw_text, str) or not raw_text.strip():
        return FALLBACK_GRAMMAR
    for grammar in GRAMMARS:
        matched = _safe_detect(grammar, raw_text)
        logger.debug("[ENGINE] %s detector: %s", grammar.name, matched)
        if matched:
            return grammar
    return FALLBACK_GRAMMAR


def extract(
    raw_text: Any,
    account_type: str = "",
    today: Optional[date] = None,
) -> list[CredentialRecord]:
    """Turn pasted text into credential records, in input order.

    Parameters
    ----------
    raw_text:
        Text exactly as the user sent it. Non-string or blank input
        yields ``[]``.
    account_type:
        Caller override applied to every record (the user picked a type).
    today:
        Date stamped into ``storage_date`` when the text carries none.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        return []

    grammar = detect_grammar(raw_text)
    try:
        raws = grammar.parse(raw_text) or []
    except Exception:
        logger.warning("[ENGINE] Parser %s failed, returning no records", grammar.name, exc_info=True)
        raws = []

    records = normalize_records(raws, grammar.name, today=today, account_type=account_type)
    logger.info(
        "[ENGINE] Grammar %s: %d candidates -> %d records",
        grammar.name,
        len(raws),
        len(records),
    )
    return records
