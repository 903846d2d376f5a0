"""Score the extraction engine against labelled paste samples.

Each case is ``{"id", "text", "expected": [{field: value, ...}, ...]}``.
Extracted records are matched to expected ones by email (case-insensitive);
record-level precision/recall/F1 come from the match counts, field-level
accuracy from the matched pairs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd

from credvault.parsers import detect_grammar, extract

logger = logging.getLogger(__name__)

EVALUATED_FIELDS = (
    "email_password",
    "two_fa_code",
    "auxiliary_email",
    "auxiliary_email_password",
    "account_key",
    "account_type",
)

_CASE_COLUMNS = ["case_id", "grammar", "n_expected", "n_extracted", "n_matched"]
_FIELD_COLUMNS = ["case_id", "grammar", "email", "field", "expected", "actual", "correct"]

MAX_LISTED_FAILURES = 10


def _ratio(numerator: Any, denominator: Any) -> np.ndarray:
    """Element-wise division with 0/0 -> 0.0."""
    num = np.asarray(numerator, dtype=float)
    den = np.asarray(denominator, dtype=float)
    return np.divide(num, den, out=np.zeros_like(num), where=den > 0)


def _prf(matched: Any, extracted: Any, expected: Any) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    precision = _ratio(matched, extracted)
    recall = _ratio(matched, expected)
    f1 = _ratio(2 * precision * recall, precision + recall)
    return precision, recall, f1


@dataclass
class ExtractionReport:
    """Per-case and per-field results of one evaluation run."""

    cases: pd.DataFrame
    fields: pd.DataFrame

    def _totals(self) -> dict[str, int]:
        return {
            col: int(self.cases[col].sum()) if not self.cases.empty else 0
            for col in ("n_expected", "n_extracted", "n_matched")
        }

    @property
    def precision(self) -> float:
        t = self._totals()
        return float(_ratio(t["n_matched"], t["n_extracted"]))

    @property
    def recall(self) -> float:
        t = self._totals()
        return float(_ratio(t["n_matched"], t["n_expected"]))

    @property
    def f1(self) -> float:
        return float(_ratio(2 * self.precision * self.recall, self.precision + self.recall))

    def per_grammar(self) -> pd.DataFrame:
        if self.cases.empty:
            return pd.DataFrame(columns=["n_cases", "precision", "recall", "f1"])
        grouped = self.cases.groupby("grammar").agg(
            n_cases=("case_id", "count"),
            n_expected=("n_expected", "sum"),
            n_extracted=("n_extracted", "sum"),
            n_matched=("n_matched", "sum"),
        )
        precision, recall, f1 = _prf(grouped["n_matched"], grouped["n_extracted"], grouped["n_expected"])
        grouped["precision"] = precision
        grouped["recall"] = recall
        grouped["f1"] = f1
        return grouped[["n_cases", "precision", "recall", "f1"]]

    def field_accuracy(self) -> pd.DataFrame:
        if self.fields.empty:
            return pd.DataFrame(columns=["accuracy", "n"])
        grouped = self.fields.groupby("field")["correct"].agg(["mean", "count"])
        return grouped.rename(columns={"mean": "accuracy", "count": "n"})

    def failed_case_ids(self) -> list[str]:
        if self.cases.empty:
            return []
        failed = self.cases[
            (self.cases["n_matched"] < self.cases["n_expected"])
            | (self.cases["n_matched"] < self.cases["n_extracted"])
        ]
        return [str(cid) for cid in failed["case_id"]]

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe summary."""
        totals = self._totals()
        failed = self.failed_case_ids()
        return {
            "n_cases": int(len(self.cases)),
            **totals,
            "precision": round(self.precision, 4),
            "recall": round(self.recall, 4),
            "f1": round(self.f1, 4),
            "per_grammar": {
                str(grammar): {
                    "n_cases": int(row["n_cases"]),
                    "precision": round(float(row["precision"]), 4),
                    "recall": round(float(row["recall"]), 4),
                    "f1": round(float(row["f1"]), 4),
                }
                for grammar, row in self.per_grammar().iterrows()
            },
            "field_accuracy": {
                str(field): {"accuracy": round(float(row["accuracy"]), 4), "n": int(row["n"])}
                for field, row in self.field_accuracy().iterrows()
            },
            "failed_count": len(failed),
            "failed_cases": failed[:MAX_LISTED_FAILURES],
        }


def _validate_cases(cases: Any) -> list[dict[str, Any]]:
    if not isinstance(cases, list):
        raise ValueError("Evaluation cases must be a JSON list")
    validated = []
    for idx, case in enumerate(cases):
        if not isinstance(case, dict):
            raise ValueError(f"Case {idx} is not an object")
        if not isinstance(case.get("text"), str):
            raise ValueError(f"Case {idx} has no 'text' string")
        expected = case.get("expected", [])
        if not isinstance(expected, list) or not all(
            isinstance(e, dict) and isinstance(e.get("email"), str) for e in expected
        ):
            raise ValueError(f"Case {idx}: 'expected' must be a list of objects with an 'email'")
        validated.append({"id": str(case.get("id", idx)), "text": case["text"], "expected": expected})
    return validated


def load_cases(path: str | Path) -> list[dict[str, Any]]:
    """Read and check a JSON fixture file of labelled cases."""
    with open(path, encoding="utf-8") as f:
        try:
            cases = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path} is not valid JSON: {exc}") from exc
    return _validate_cases(cases)


def _match_by_email(expected: list[dict[str, Any]], extracted: list[dict[str, str]]) -> list[tuple[dict, dict]]:
    unused = list(range(len(extracted)))
    pairs = []
    for exp in expected:
        wanted = exp["email"].strip().lower()
        for pos, idx in enumerate(unused):
            if extracted[idx]["email"].lower() == wanted:
                pairs.append((exp, extracted[idx]))
                del unused[pos]
                break
    return pairs


def evaluate_cases(cases: list[dict[str, Any]], today: Optional[date] = None) -> ExtractionReport:
    """Run ``extract`` over every case and collect match statistics."""
    cases = _validate_cases(cases)
    logger.info("[EVAL] Evaluating %d cases", len(cases))

    case_rows: list[dict[str, Any]] = []
    field_rows: list[dict[str, Any]] = []

    for case in cases:
        grammar = detect_grammar(case["text"]).name
        extracted = [r.to_dict() for r in extract(case["text"], today=today)]
        pairs = _match_by_email(case["expected"], extracted)

        case_rows.append({
            "case_id": case["id"],
            "grammar": grammar,
            "n_expected": len(case["expected"]),
            "n_extracted": len(extracted),
            "n_matched": len(pairs),
        })

        for exp, got in pairs:
            for field in EVALUATED_FIELDS:
                if field not in exp:
                    continue
                field_rows.append({
                    "case_id": case["id"],
                    "grammar": grammar,
                    "email": got["email"],
                    "field": field,
                    "expected": str(exp[field]),
                    "actual": got[field],
                    "correct": str(exp[field]).strip() == got[field],
                })

        logger.debug(
            "[EVAL] %s via %s: expected=%d extracted=%d matched=%d",
            case["id"], grammar, len(case["expected"]), len(extracted), len(pairs),
        )

    return ExtractionReport(
        cases=pd.DataFrame(case_rows, columns=_CASE_COLUMNS),
        fields=pd.DataFrame(field_rows, columns=_FIELD_COLUMNS),
    )
