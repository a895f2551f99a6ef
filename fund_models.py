"""
fund_models.py

Typed records and error values shared by the allocation engine and the
statement normaliser.  Records are flat dataclasses that round-trip through
JSON-compatible dictionaries; numeric fields are coerced on the way in so
that persisted or hand-edited state with blank or malformed numbers still
loads.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import pandas as pd

from utils.number_utils import coerce_number

__all__ = [
    "FundRecord",
    "AllocationResult",
    "AllocationPlan",
    "PortfolioError",
    "TargetSumMismatch",
    "HeaderNotFound",
    "MissingColumns",
    "UnsupportedFormat",
    "UnsupportedBroker",
]


@dataclass
class FundRecord:
    name: str
    current_value: float = 0.0
    expected_return: float = 0.0
    target_percent: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FundRecord":
        name = data.get("name")
        return cls(
            name=str(name).strip() if name is not None else "",
            current_value=coerce_number(data.get("current_value")),
            expected_return=coerce_number(data.get("expected_return")),
            target_percent=coerce_number(data.get("target_percent")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AllocationResult:
    """One fund of an allocation plan.

    ``current_share_percent`` is the fund's share of the portfolio before the
    contribution (one decimal place); ``invest_amount`` is the whole-unit
    amount to put into the fund this cycle.
    """

    name: str
    current_value: float
    expected_return: float
    target_percent: float
    current_share_percent: float
    invest_amount: int


@dataclass
class AllocationPlan:
    contribution: float
    results: List[AllocationResult] = field(default_factory=list)
    total_invested: int = 0

    def to_frame(self) -> pd.DataFrame:
        """Return the plan as a reporting DataFrame, one row per fund."""
        columns = {
            "Fund Name": [r.name for r in self.results],
            "Current Value": [r.current_value for r in self.results],
            "Current %": [r.current_share_percent for r in self.results],
            "Target %": [r.target_percent for r in self.results],
            "XIRR": [r.expected_return for r in self.results],
            "Invest Amount": [r.invest_amount for r in self.results],
        }
        return pd.DataFrame(columns)


# -------------------------------------------------------------------------
# Errors
#
class PortfolioError(ValueError):
    """Base class for the expected, structural failures of the core.

    Each subclass carries a stable ``code`` so callers can branch on the
    failure without parsing messages.
    """

    code = "portfolio_error"


class TargetSumMismatch(PortfolioError):
    code = "target_sum_mismatch"

    def __init__(self, actual_sum: float) -> None:
        self.actual_sum = actual_sum
        super().__init__(f"Total target must be 100%. Current: {actual_sum:g}%")


class HeaderNotFound(PortfolioError):
    code = "header_not_found"

    def __init__(self) -> None:
        super().__init__(
            "Could not find a header row with 'Scheme Name' and 'Current Value'. Invalid statement file."
        )


class MissingColumns(PortfolioError):
    code = "missing_columns"

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class UnsupportedFormat(PortfolioError):
    code = "unsupported_format"

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(
            f"Unsupported file format '{extension or '(none)'}'. Please upload .csv, .xlsx or .xls"
        )


class UnsupportedBroker(PortfolioError):
    code = "unsupported_broker"

    def __init__(self, broker: str) -> None:
        self.broker = broker
        super().__init__(f"No statement parser available for broker '{broker}'")
