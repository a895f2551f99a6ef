#!/usr/bin/env python3
"""
run_statement_import.py

Caller/orchestrator that imports a broker holdings statement into the saved
portfolio.

Steps:
- Reads the statement (CSV/XLSX/XLS) and normalises it into fund records
- Keeps the target percentage of every fund that was already saved
- Writes the merged fund list back to the state file
- Optional audit trail printout

Usage::

    python run_statement_import.py <statement-file> [--broker BROKER] [--state STATE]
                                   [--config CONFIG] [--debug] [--show-audit]

Configuration keys considered (default_settings.json):
- STATE_FILE
- DEFAULT_BROKER
- DEBUG
- LOG_DIR

Exit codes: 0 success, 2 missing statement file, 3 statement could not be
parsed, 4 state file could not be written, 5 state file could not be read.
"""
from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from utils.config_utils import DEFAULT_CONFIG, apply_env_from_settings, load_settings

DEFAULT_STATE_FILE = "data/portfolio_state.json"


# -------------------------- main --------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import a broker holdings statement")
    parser.add_argument("statement", help="Path to the exported statement (.csv, .xlsx or .xls)")
    parser.add_argument("--broker", default=None, help="Broker that produced the statement (default: from filename or config)")
    parser.add_argument("--state", default=None, help="Path to the portfolio state JSON")
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Path to settings JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--show-audit", action="store_true", help="Print audit log at the end")

    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    if args.debug:
        settings["DEBUG"] = True
    apply_env_from_settings(settings)

    # Imported after the environment is prepared so logging picks up DEBUG/LOG_DIR
    from fund_models import PortfolioError
    from portfolio_state import load_portfolio_state, merge_imported_funds, save_portfolio_state
    from utils.log_utils import get_audit_log
    from utils.statement_utils import detect_broker, parse_broker_statement

    if not os.path.isfile(args.statement):
        sys.stderr.write(f"Error: input file does not exist: {args.statement}\n")
        return 2

    state_path = args.state or settings.get("STATE_FILE") or DEFAULT_STATE_FILE
    broker = args.broker or detect_broker(args.statement, settings.get("DEFAULT_BROKER") or "groww")

    try:
        imported = parse_broker_statement(args.statement, broker=broker)
    except PortfolioError as exc:
        sys.stderr.write(f"Error importing: {exc}\n")
        return 3

    try:
        existing, contribution = load_portfolio_state(state_path)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"Failed to load portfolio state from {state_path}: {exc}\n")
        return 5

    merged = merge_imported_funds(existing, imported)

    try:
        save_portfolio_state(state_path, merged, contribution)
    except OSError as exc:
        sys.stderr.write(f"Failed to write portfolio state: {exc}\n")
        return 4

    if args.show_audit:
        for stamp, msg in get_audit_log():
            print(f"[{stamp}] {msg}")

    for fund in merged:
        print(f"{fund.name}: value={fund.current_value:,.2f} xirr={fund.expected_return:.2f}% target={fund.target_percent:g}%")
    print(f"Successfully imported {len(merged)} fund(s) from {broker.capitalize()}. State: {state_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
