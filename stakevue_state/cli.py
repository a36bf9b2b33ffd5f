"""CLI and main logic."""

import argparse
import json
import logging
import sys

from stakevue_state.config import EngineConfig
from stakevue_state.console import print_delegations, print_protocol_stats, print_withdrawals
from stakevue_state.engine import StateEngine
from stakevue_state.errors import ConfigurationError


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Read StakeVue liquid-staking state from a Casper node.")
    p.add_argument(
        "--rpc-url",
        action="append",
        default=None,
        help="Casper node RPC URL; repeat for fallback order. Defaults to CASPER_RPC_URL(S), then public testnet nodes.",
    )
    p.add_argument("--timeout", type=float, default=None, help="Per-call RPC timeout in seconds.")
    p.add_argument(
        "--scan-window",
        type=int,
        default=None,
        help="How many recent withdrawal ids to scan when the per-user index is unavailable.",
    )
    p.add_argument("--debug", action="store_true", help="Include resolution attempts and log to stderr.")
    p.add_argument("--json", action="store_true", help="Print the response as JSON.")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("stats", help="Pool balance, stCSPR supply and exchange rate.")
    w = sub.add_parser("withdrawals", help="Withdrawal requests of an account.")
    w.add_argument("account", help="Account public key or account hash.")
    sub.add_parser("delegations", help="Pool delegations per approved validator.")
    return p.parse_args(argv)


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = EngineConfig.from_env(
            rpc_urls=args.rpc_url,
            rpc_timeout_s=args.timeout,
            withdrawal_scan_window=args.scan_window,
            debug=True if args.debug else None,
            show_progress=not args.json and sys.stderr.isatty(),
        )
    except ConfigurationError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2
    engine = StateEngine(config)
    if engine.config_error:
        print(f"Error: {engine.config_error}", file=sys.stderr)
        return 2

    if args.command == "stats":
        result = engine.get_protocol_stats()
        render = print_protocol_stats
    elif args.command == "withdrawals":
        result = engine.get_withdrawals(args.account)
        render = print_withdrawals
    else:
        result = engine.get_validator_delegations()
        render = print_delegations

    # The error travels inside the rendered response, in both output modes.
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        render(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
