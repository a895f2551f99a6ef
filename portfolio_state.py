"""
portfolio_state.py

Persistence and bookkeeping for the investor's portfolio: the fund list and
the periodic contribution amount.  State is stored as a small JSON document

    {"contribution": 20000, "funds": [{"name": ..., "current_value": ...,
     "expected_return": ..., "target_percent": ...}, ...]}

The allocation engine and the statement normaliser never read or write this
file themselves; the command-line runners load state, hand plain records to
the core, and save the outcome.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterable, List, Tuple

from fund_models import FundRecord
from utils.log_utils import audit, get_logger
from utils.number_utils import coerce_number

logger = get_logger(__name__)

DEFAULT_CONTRIBUTION = 20000.0

__all__ = [
    "DEFAULT_CONTRIBUTION",
    "default_funds",
    "merge_imported_funds",
    "load_portfolio_state",
    "save_portfolio_state",
]


def default_funds() -> List[FundRecord]:
    """Seed portfolio used when no saved state exists."""
    return [
        FundRecord(name="Small Cap Fund", current_value=0.0, expected_return=15.0, target_percent=40.0),
        FundRecord(name="Flexi Cap Fund", current_value=0.0, expected_return=12.0, target_percent=30.0),
        FundRecord(name="Mid Cap / Focused", current_value=0.0, expected_return=18.0, target_percent=30.0),
    ]


def merge_imported_funds(existing: Iterable[FundRecord], imported: Iterable[FundRecord]) -> List[FundRecord]:
    """Combine freshly imported records with the previous fund list.

    The imported records replace the fund list wholesale, in import order.
    A fund whose name matches an existing fund keeps that fund's target
    percentage; new funds start at 0.  Existing funds missing from the
    import are dropped.

    Args:
        existing: The fund list before the import.
        imported: Records produced by the statement normaliser.

    Returns:
        New ``FundRecord`` objects; the inputs are not modified.
    """
    targets: Dict[str, float] = {}
    for fund in existing:
        targets.setdefault(fund.name, fund.target_percent)
    merged: List[FundRecord] = []
    kept = 0
    for fund in imported:
        if fund.name in targets:
            kept += 1
        merged.append(
            FundRecord(
                name=fund.name,
                current_value=fund.current_value,
                expected_return=fund.expected_return,
                target_percent=targets.get(fund.name, 0.0),
            )
        )
    audit(f"Merged {len(merged)} imported fund(s); {kept} kept a previous target")
    return merged


def load_portfolio_state(path: str) -> Tuple[List[FundRecord], float]:
    """Load ``(funds, contribution)`` from ``path``.

    A missing file yields the seed portfolio and ``DEFAULT_CONTRIBUTION``.
    Entries without a name are ignored; malformed numbers load as 0.

    Raises:
        json.JSONDecodeError: If the file exists but is not valid JSON.
    """
    if not os.path.isfile(path):
        logger.info(f"No saved state at {path}; starting from the default portfolio")
        return default_funds(), DEFAULT_CONTRIBUTION
    with open(path, "r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = json.load(fh)
    funds: List[FundRecord] = []
    for entry in raw.get("funds") or []:
        if not isinstance(entry, dict):
            continue
        record = FundRecord.from_dict(entry)
        if not record.name:
            logger.debug(f"Ignoring saved fund without a name: {entry}")
            continue
        funds.append(record)
    contribution = coerce_number(raw.get("contribution", DEFAULT_CONTRIBUTION))
    logger.debug(f"Loaded {len(funds)} fund(s) and contribution={contribution} from {path}")
    return funds, contribution


def save_portfolio_state(path: str, funds: Iterable[FundRecord], contribution: float) -> str:
    """Write the fund list and contribution to ``path`` as JSON.

    Parent directories are created as needed.

    Returns:
        The path written.
    """
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    payload = {
        "contribution": coerce_number(contribution),
        "funds": [fund.to_dict() for fund in funds],
    }
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
    audit(f"Saved {len(payload['funds'])} fund(s) to {path}")
    return path
