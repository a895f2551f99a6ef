#!/usr/bin/env python3
"""
=================================================================================
 Script: run_sip_allocation.py
 Project: SIP Rebalancer
 Role: Caller/orchestrator that plans how to split this cycle's contribution.

 Clean Architecture:
   - Orchestration only: reads config and saved state, calls the pure
     allocation engine, prints and writes the plan.
   - No I/O inside the allocation utilities.

 Outputs:
   - Allocation table on stdout with the portfolio's average XIRR
   - <OUTPUT_DIR>/allocation-<timestamp>.csv  (one row per fund)
   - <OUTPUT_DIR>/allocation-<timestamp>.json (summary, rows and audit trail)
=================================================================================
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from utils.config_utils import DEFAULT_CONFIG, apply_env_from_settings, load_settings

DEFAULT_STATE_FILE = "data/portfolio_state.json"


def write_report(output_dir: str, timestamp: str, plan: Any, payload: Dict[str, Any]) -> Dict[str, str]:
    """Write the plan as CSV plus a JSON summary; returns the paths written."""
    os.makedirs(output_dir, exist_ok=True)
    csv_path = os.path.join(output_dir, f"allocation-{timestamp}.csv")
    json_path = os.path.join(output_dir, f"allocation-{timestamp}.json")
    plan.to_frame().to_csv(csv_path, index=False)
    with open(json_path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
    return {"csv": csv_path, "json": json_path}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Plan this cycle's SIP allocation.")
    parser.add_argument("--state", default=None, help="Path to the portfolio state JSON")
    parser.add_argument("--contribution", default=None, help="Override the saved contribution amount")
    parser.add_argument("--outdir", default=None, help="Override output directory")
    parser.add_argument("--timestamp", default=None, help="Override timestamp for output file names")
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Path to settings JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--show-audit", action="store_true", help="Print audit log at the end")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    if args.outdir:
        settings["OUTPUT_DIR"] = args.outdir
    if args.debug:
        settings["DEBUG"] = True
    apply_env_from_settings(settings)

    # Imported after the environment is prepared so logging picks up DEBUG/LOG_DIR
    from fund_models import TargetSumMismatch
    from portfolio_state import load_portfolio_state
    from utils.allocation_metrics import allocate, weighted_average_return
    from utils.log_utils import get_audit_log, get_logger

    logger = get_logger("run_sip_allocation")

    state_path = args.state or settings.get("STATE_FILE") or DEFAULT_STATE_FILE
    try:
        funds, saved_contribution = load_portfolio_state(state_path)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"Failed to load portfolio state from {state_path}: {exc}\n")
        return 2

    if args.contribution is not None:
        contribution = args.contribution
    elif "DEFAULT_CONTRIBUTION" in settings and not os.path.isfile(state_path):
        contribution = settings["DEFAULT_CONTRIBUTION"]
    else:
        contribution = saved_contribution
    logger.info(f"Planning allocation for {len(funds)} fund(s) from {state_path}")

    try:
        plan = allocate(funds, contribution)
    except TargetSumMismatch as exc:
        sys.stderr.write(f"{exc}\n")
        return 3

    avg_xirr = weighted_average_return(funds)
    frame = plan.to_frame()
    frame.index = range(1, len(frame) + 1)
    print("Allocation Plan")
    print(f"Portfolio Avg XIRR: {avg_xirr:.2f}%")
    print(frame.to_string())
    print(f"Total Investment: {plan.total_invested:,}")

    ts = args.timestamp or datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = settings.get("OUTPUT_DIR") or os.environ.get("OUTPUT_DIR") or "./out"
    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "state_file": state_path,
        "contribution": plan.contribution,
        "total_invested": plan.total_invested,
        "weighted_average_return": avg_xirr,
        "allocations": frame.to_dict(orient="records"),
        "audit": get_audit_log(),
    }
    try:
        paths = write_report(output_dir, ts, plan, payload)
    except OSError as exc:
        sys.stderr.write(f"Failed to write allocation report: {exc}\n")
        return 5

    logger.info(f"Report written: {paths}")

    if args.show_audit:
        for stamp, msg in get_audit_log():
            print(f"[{stamp}] {msg}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
