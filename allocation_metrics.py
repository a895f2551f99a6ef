"""
allocation_metrics.py

This module holds the contribution-allocation engine and the small set of
portfolio summary statistics shown next to an allocation plan.  Given the
funds currently held, their target percentages and a new periodic
contribution (SIP), ``allocate`` decides how much of the contribution each
fund should receive so that the portfolio drifts toward its targets without
ever selling anything.

The rebalance is deficit-proportional:

* the portfolio is projected forward as ``current total + contribution``;
* each fund's ideal value is its target share of that projection;
* a fund's deficit is how far it sits below its ideal value (never
  negative);
* the contribution is split in proportion to those deficits.  When no fund
  is below target the contribution is split by target percentage instead,
  so it is never discarded.

Amounts are rounded to whole units per fund, independently.  The reported
``total_invested`` is the sum of the rounded amounts and may differ from the
contribution by a few units; no remainder is redistributed.

All functions are pure: they never touch files or shared state.  Inputs may
be ``FundRecord`` instances or JSON-compatible mappings, and every numeric
field passes through ``coerce_number`` so malformed values count as zero.
Debug logging and audit events follow the conventions in
``utils/log_utils.py``.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Mapping, Union

import pandas as pd

from fund_models import AllocationPlan, AllocationResult, FundRecord, TargetSumMismatch
from utils.log_utils import audit, get_logger
from utils.number_utils import coerce_number, round_amount, round_half_up

__all__ = [
    "TARGET_TOTAL",
    "TARGET_TOLERANCE",
    "allocate",
    "allocation_breakdown",
    "total_current_value",
    "total_target_percent",
    "validate_target_sum",
    "weighted_average_return",
]

logger = get_logger(__name__)

TARGET_TOTAL = Decimal("100")
TARGET_TOLERANCE = Decimal("0.1")

FundLike = Union[FundRecord, Mapping[str, Any]]


def _as_records(funds: Iterable[FundLike]) -> List[FundRecord]:
    records: List[FundRecord] = []
    for fund in funds:
        if isinstance(fund, FundRecord):
            records.append(
                FundRecord(
                    name=fund.name,
                    current_value=coerce_number(fund.current_value),
                    expected_return=coerce_number(fund.expected_return),
                    target_percent=coerce_number(fund.target_percent),
                )
            )
        else:
            records.append(FundRecord.from_dict(fund))
    return records


def total_current_value(funds: Iterable[FundLike]) -> float:
    """Sum of ``current_value`` over ``funds``."""
    return sum(record.current_value for record in _as_records(funds))


def total_target_percent(funds: Iterable[FundLike]) -> float:
    """Sum of ``target_percent`` over ``funds``."""
    return sum(record.target_percent for record in _as_records(funds))


def validate_target_sum(funds: Iterable[FundLike]) -> float:
    """Check that target percentages add up to 100.

    The sum is compared at one decimal place, rounding halves up, which is
    the precision targets are entered and displayed with.  A sum whose
    rounded value lies within 0.1 of 100 is accepted, so the accepted raw
    sums form the half-open window [99.85, 100.15): 99.85 and 100.14 pass
    while 99.84 and 100.15 do not.

    Args:
        funds: Fund records or mappings.

    Returns:
        The unrounded target sum.

    Raises:
        TargetSumMismatch: If the rounded sum is more than 0.1 away from
            100.  The exception carries the unrounded sum.
    """
    total = total_target_percent(funds)
    displayed = Decimal(repr(total)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if abs(displayed - TARGET_TOTAL) > TARGET_TOLERANCE:
        logger.error(f"Target percentages sum to {total}, expected {TARGET_TOTAL}")
        raise TargetSumMismatch(total)
    return total


def weighted_average_return(funds: Iterable[FundLike]) -> float:
    """Value-weighted average expected return (XIRR) of a portfolio.

    Computed as ``sum(value * xirr) / sum(value)`` and rounded to two
    decimals.  Returns ``0.0`` for a portfolio with no value yet.

    Example:
        >>> weighted_average_return([
        ...     {"name": "A", "current_value": 1000, "expected_return": 10},
        ...     {"name": "B", "current_value": 3000, "expected_return": 20},
        ... ])
        17.5
    """
    records = _as_records(funds)
    total = sum(record.current_value for record in records)
    if total <= 0:
        return 0.0
    score = sum(record.current_value * record.expected_return for record in records)
    return round_half_up(score / total, 2)


def allocate(funds: Iterable[FundLike], contribution: Any) -> AllocationPlan:
    """Split a periodic contribution across funds to move toward targets.

    Args:
        funds: Ordered fund records (or mappings with ``name``,
            ``current_value``, ``expected_return`` and ``target_percent``).
            Target percentages must sum to 100 (see ``validate_target_sum``).
        contribution: Amount to invest this cycle.  Non-numeric, missing or
            negative values are treated as 0, which yields a plan of zeros.

    Returns:
        An ``AllocationPlan`` with one ``AllocationResult`` per fund, in
        input order, and ``total_invested`` equal to the sum of the rounded
        per-fund amounts.

    Raises:
        TargetSumMismatch: If the target percentages do not sum to 100
            within tolerance.  No partial plan is produced.

    Example:
        >>> plan = allocate(
        ...     [{"name": "A", "target_percent": 50}, {"name": "B", "target_percent": 50}],
        ...     10000,
        ... )
        >>> [r.invest_amount for r in plan.results], plan.total_invested
        ([5000, 5000], 10000)
    """
    records = _as_records(funds)
    validate_target_sum(records)
    amount = max(coerce_number(contribution), 0.0)

    current_total = sum(record.current_value for record in records)
    projected_total = current_total + amount

    deficits: List[float] = []
    for record in records:
        ideal_value = projected_total * record.target_percent / 100
        deficits.append(max(0.0, ideal_value - record.current_value))
    total_deficit = sum(deficits)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            f"Allocation inputs: funds={len(records)}, contribution={amount}, "
            f"current_total={current_total}, projected_total={projected_total}, "
            f"total_deficit={total_deficit}"
        )
    if total_deficit <= 0:
        logger.debug("No fund is below its target; splitting contribution by target percentage")

    results: List[AllocationResult] = []
    for record, deficit in zip(records, deficits):
        if total_deficit > 0:
            raw_amount = amount * deficit / total_deficit
        else:
            raw_amount = amount * record.target_percent / 100
        share = round_half_up(record.current_value / current_total * 100, 1) if current_total > 0 else 0.0
        results.append(
            AllocationResult(
                name=record.name,
                current_value=record.current_value,
                expected_return=record.expected_return,
                target_percent=record.target_percent,
                current_share_percent=share,
                invest_amount=max(round_amount(raw_amount), 0),
            )
        )

    total_invested = sum(result.invest_amount for result in results)
    audit(
        f"Allocated contribution={amount:g} across {len(results)} fund(s); total_invested={total_invested}"
    )
    return AllocationPlan(contribution=amount, results=results, total_invested=total_invested)


def allocation_breakdown(funds: Iterable[FundLike]) -> pd.DataFrame:
    """Current versus target share of each fund, as percentages.

    When the portfolio has no value yet every current share is 0 rather than
    NaN.

    Returns:
        DataFrame with columns ``Fund Name``, ``Current Value``,
        ``Current %`` and ``Target %``.
    """
    records = _as_records(funds)
    total = sum(record.current_value for record in records)
    return pd.DataFrame(
        {
            "Fund Name": [record.name for record in records],
            "Current Value": [record.current_value for record in records],
            "Current %": [
                round_half_up(record.current_value / total * 100, 1) if total > 0 else 0.0
                for record in records
            ],
            "Target %": [record.target_percent for record in records],
        }
    )
