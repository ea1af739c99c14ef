#!/usr/bin/env python3
# Copyright (c) 2025 The BATHRON 2.0 developers
# Distributed under the MIT software license

"""
pivot-pool - Pivot Pool AMM command line

Commands:
  serve                          Run the REST API
  demo                           Scripted walk through the pool mechanics
  quote ASSET_IN AMOUNT ASSET_OUT
                                 Quote against the default pool
  il RATIO                       Impermanent loss for a price ratio
"""

import argparse
import logging
import sys
from decimal import Decimal

from . import __version__
from .config import ServerConfig, setup_logging
from .pivot_pool import PivotPool
from .pool_types import PoolError, Quote, to_decimal
from .pricing import impermanent_loss

log = logging.getLogger(__name__)


# =============================================================================
# OUTPUT
# =============================================================================

def print_status(pool: PivotPool):
    print("\n" + "=" * 60)
    print("PIVOT POOL STATUS")
    print("=" * 60)
    print(f"Total {pool.pivot} Liquidity: {pool.total_pivot:,}")
    print(f"Fee: {Decimal(pool.fee_bps) / 100}%")
    print("\nReserves:")
    info = pool.pool_info()
    for ticker, res in info["reserves"].items():
        print(f"  {ticker}:")
        print(f"    Reserve: {res['reserve']:,.6f}")
        print(f"    Weight: {res['weight_display']}")
        print(f"    Virtual {pool.pivot}: {res['virtual_pivot']:,.2f}")
        print(f"    Price: {res['price']:,.2f} {pool.pivot}/{ticker}")

    print(f"\nRecent swaps: {len(pool.history)}")
    for record in pool.history:
        print(f"  {record.input} -> {record.output} (fee {record.fee:.4f})")
    print("=" * 60 + "\n")


def print_quote(quote: Quote):
    print(f"  Route: {' -> '.join(quote.route)}")
    if quote.intermediate_pivot is not None:
        print(f"  Intermediate: {quote.intermediate_pivot:,.4f} {quote.route[1]}")
    print(f"  Amount out: {quote.amount_out:,.6f} {quote.asset_out}")
    print(f"  Fee: {quote.fee:,.6f}")
    if quote.price_before is not None:
        print(f"  Price before: {quote.price_before:,.6f}")
    if quote.price_after is not None:
        print(f"  Price after: {quote.price_after:,.6f}")
    print(f"  Slippage: {quote.slippage:.2f}%")


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_serve(args) -> int:
    from .server import create_app

    config = ServerConfig.from_env(args.env_file)
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.store:
        config.store = args.store
    setup_logging(args.log_level or config.log_level)

    app = create_app(config)
    log.info(f"Starting Pivot Pool API on {config.host}:{config.port}")
    log.info(f"Store: {config.store}")
    app.run(host=config.host, port=config.port, debug=False)
    return 0


def cmd_demo(args) -> int:
    print("\n" + "#" * 60)
    print("# BATHRON PIVOT POOL AMM DEMO")
    print("#" * 60)

    pool = PivotPool.default()
    print_status(pool)

    print("-" * 60)
    print("SWAP QUOTES")
    print("-" * 60)

    for asset_in, amount, asset_out in (("TBTC", "0.1", pool.pivot),
                                        (pool.pivot, "1000", "TUSDC"),
                                        ("TBTC", "0.1", "TUSDC")):
        print(f"\n[QUOTE] {amount} {asset_in} -> {asset_out}")
        print_quote(pool.quote_swap(asset_in, amount, asset_out))

    print("\n[EXECUTE] Large swap: 1 TBTC -> KHU")
    pool, quote = pool.execute_swap("TBTC", "1", pool.pivot)
    print_quote(quote)
    print(f"\n  New TBTC price: {pool.get_price('TBTC'):,.2f} {pool.pivot}/TBTC")
    print_status(pool)

    print("-" * 60)
    print(f"SCENARIO: add 50,000 {pool.pivot} liquidity")
    print("-" * 60)
    pool = pool.add_liquidity("50000")
    print("\n[QUOTE] Same 1 TBTC swap with more liquidity:")
    print_quote(pool.quote_swap("TBTC", "1", pool.pivot))
    print_status(pool)
    return 0


def cmd_quote(args) -> int:
    pool = PivotPool.default()
    quote = pool.quote_swap(args.asset_in, args.amount, args.asset_out)
    if quote is None:
        print(f"No route {args.asset_in} -> {args.asset_out}")
        return 1
    print(f"[QUOTE] {args.amount} {args.asset_in} -> {args.asset_out}")
    print_quote(quote)
    return 0


def cmd_il(args) -> int:
    ratio = to_decimal(args.ratio, "price_ratio")
    il = impermanent_loss(ratio)
    print(f"Price ratio {ratio}: IL {il * 100:+.2f}% (value vs HODL {1 + il:.4f}x)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pivot-pool", description="BATHRON Pivot Pool AMM")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the REST API")
    serve_parser.add_argument("--host", help="Bind address (default: PIVOT_POOL_HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port (default: PIVOT_POOL_PORT or 8090)")
    serve_parser.add_argument("--store", help="'memory' or JSON file path (default: PIVOT_POOL_STORE)")
    serve_parser.add_argument("--env-file", default=".env", help="Optional .env file (default: .env)")
    serve_parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    serve_parser.set_defaults(func=cmd_serve)

    demo_parser = subparsers.add_parser("demo", help="Walk through the pool mechanics")
    demo_parser.set_defaults(func=cmd_demo)

    quote_parser = subparsers.add_parser("quote", help="Quote against the default pool")
    quote_parser.add_argument("asset_in")
    quote_parser.add_argument("amount")
    quote_parser.add_argument("asset_out")
    quote_parser.set_defaults(func=cmd_quote)

    il_parser = subparsers.add_parser("il", help="Impermanent loss for a price ratio")
    il_parser.add_argument("ratio", help="new_price / initial_price")
    il_parser.set_defaults(func=cmd_il)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except PoolError as e:
        print(f"[ERROR] {e.kind}: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
