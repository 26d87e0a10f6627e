"""CLI entrypoint for bridging a token and swapping it on the destination chain."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from bridgeswap.config import load_config, load_settings
from bridgeswap.core.orchestrator import RunResult, create_orchestrator
from bridgeswap.core.utils import dump_json, get_logger

LOGGER = get_logger("bridgeswap.cli")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bridge with Across and swap on Balancer in one deposit")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--dry-run", action="store_true", help="Quote the deposit without sending transactions")
    group.add_argument("--send", action="store_true", help="Approve, deposit and wait for the fill")
    parser.add_argument("--config", type=Path, default=Path("config.json"), help="Path to the route config file")
    parser.add_argument("--json", action="store_true", help="Print the run summary as JSON on stdout")
    return parser.parse_args(argv)


def summarize(result: RunResult) -> Dict[str, Any]:
    """Machine-readable summary of a run."""
    summary: Dict[str, Any] = {
        "message": result.message.to_dict(),
        "quote": result.quote.to_dict(),
    }
    if result.resolved_message is not None:
        summary["resolvedMessage"] = result.resolved_message.to_dict()
    if result.report is not None:
        summary["steps"] = result.report.to_dict()
        summary["depositId"] = result.report.deposit_id
        summary["filled"] = result.report.filled
        summary["swapSucceeded"] = result.report.swap_succeeded
    return summary


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    load_dotenv()

    try:
        route = load_config(args.config)
        settings = load_settings(route)
        orchestrator = create_orchestrator(route, settings)
        result = orchestrator.run(dry_run=args.dry_run)
    except Exception as exc:
        LOGGER.error("Failed to execute swap: %s", exc, exc_info=True)
        sys.exit(1)

    if result.report is not None and result.report.swap_succeeded is False:
        LOGGER.warning("Deposit %s filled but the swap failed", result.report.deposit_id)
    if args.json:
        print(dump_json(summarize(result)))


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
