#!/usr/bin/env python3
"""ETH Price Feed.

Keeps an ETH/USD rate fresh from an ordered list of public price APIs,
falling back to a fixed rate when none answers, and logs every update.

Run with env vars or CLI flags. CLI flags take precedence.
"""

import argparse
import asyncio
import logging
import os
import sys
from decimal import Decimal, InvalidOperation

from web3 import Web3

from .src.PriceQuote import DEFAULT_FALLBACK_PRICE
from .src.PriceScheduler import (
    DEFAULT_FAST_PERIOD,
    DEFAULT_ROBUST_PERIOD,
    PriceScheduler,
)
from .src.PriceStore import PriceState
from .src.RetryController import DEFAULT_RETRY_DELAYS, exponential_delays
from .src.price_cache import DEFAULT_CACHE_DURATION
from .src.sources import DEFAULT_SOURCE_ORDER, get_available_sources

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: etherscan=abc123,coingecko=demo:CG-xyz

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping lowercase source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        source, sep, key = item.strip().partition("=")
        if sep and source.strip() and key.strip():
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Collect API keys from API_KEY_<SOURCE> environment variables.

    :param environ: Environment mapping (default: os.environ).
    :returns: Dict mapping lowercase source names to API keys.
    """
    environ = os.environ if environ is None else environ
    prefix = "API_KEY_"
    return {
        key[len(prefix):].lower(): value
        for key, value in environ.items()
        if key.startswith(prefix) and value
    }


def parse_delays(delays_str: str) -> tuple[float, ...]:
    """Parse a retry delay schedule in seconds.

    Either an explicit comma-separated list, or a doubling schedule written
    as ``exp:BASE:COUNT[:MAX]`` (e.g. "exp:1:4:5" -> 1, 2, 4, 5).

    :param delays_str: String like "1,2,5" or "exp:1:3". Empty means no retries.
    :returns: Tuple of delays.
    :raises ValueError: If a delay is not a non-negative number or the
        doubling schedule is malformed.
    """
    if delays_str.strip().lower().startswith("exp:"):
        fields = delays_str.strip().split(":")[1:]
        if len(fields) not in (2, 3):
            raise ValueError(f"expected exp:BASE:COUNT[:MAX], got '{delays_str}'")
        max_delay = float(fields[2]) if len(fields) == 3 else None
        return exponential_delays(float(fields[0]), int(fields[1]), max_delay)

    delays = tuple(float(d) for d in delays_str.split(",") if d.strip())
    if any(d < 0 for d in delays):
        raise ValueError("retry delays must not be negative")
    return delays


def resolve_contract_address(address: str | None) -> str | None:
    """Validate the configured contract address and checksum it.

    The address is not used by the price feed itself; it is passed through
    for the contract-facing collaborators and shown in the start-up banner.

    :param address: Hex address or None.
    :returns: EIP-55 checksummed address, or None if not configured.
    :raises ValueError: If the address is not a valid hex address.
    """
    if not address:
        return None
    if not Web3.is_address(address):
        raise ValueError(f"Invalid contract address '{address}'")
    return Web3.to_checksum_address(address)


def _log_state_changes():
    """Build a store listener logging each newly published quote."""
    last_quote = None

    def listener(state: PriceState) -> None:
        nonlocal last_quote
        if state.is_loading or state.quote is last_quote:
            return
        last_quote = state.quote
        if state.last_error_suppressed:
            logger.warning(f"ETH/USD {state.quote} (no live source available)")
        else:
            logger.info(f"ETH/USD {state.quote}")

    return listener


async def fetch_once(scheduler: PriceScheduler) -> PriceState:
    """Run one robust refresh and release the HTTP client.

    :param scheduler: Configured scheduler (timers are not started).
    :returns: Resulting price state.
    """
    try:
        await scheduler.robust_refresh()
    finally:
        await scheduler.aclose()
    return scheduler.state


def main() -> None:
    """Main entry point for the ETH Price Feed CLI."""
    available_sources = get_available_sources()

    parser = argparse.ArgumentParser(
        description="ETH Price Feed: ETH/USD rate with ordered source fallback",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Examples:
  # Default source order, refresh forever
  python -m ethprice.main

  # Fetch once and print "<price> <source>"
  python -m ethprice.main --once

  # Custom order and faster cadence
  python -m ethprice.main --sources coingecko,coinbase --fast-period 10

Environment variables (CLI args take precedence):
  SOURCES, FAST_PERIOD, ROBUST_PERIOD, CACHE_DURATION, RETRY_DELAYS,
  FALLBACK_PRICE, FETCH_TIMEOUT, NETWORK_SLA_ADDRESS, API_KEYS,
  API_KEY_ETHERSCAN, API_KEY_COINGECKO, API_KEY_CRYPTOCOMPARE
""",
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated sources, most trusted first. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or ",".join(DEFAULT_SOURCE_ORDER),
    )

    parser.add_argument(
        "--fast-period",
        dest="fast_period",
        type=float,
        help=f"Seconds between cache-gated refreshes (default: {DEFAULT_FAST_PERIOD:g})",
        default=os.environ.get("FAST_PERIOD") or str(DEFAULT_FAST_PERIOD),
    )

    parser.add_argument(
        "--robust-period",
        dest="robust_period",
        type=float,
        help=f"Seconds between refreshes with retries (default: {DEFAULT_ROBUST_PERIOD:g})",
        default=os.environ.get("ROBUST_PERIOD") or str(DEFAULT_ROBUST_PERIOD),
    )

    parser.add_argument(
        "--cache-duration",
        dest="cache_duration",
        type=float,
        help=f"Seconds a live quote stays fresh (default: {DEFAULT_CACHE_DURATION:g})",
        default=os.environ.get("CACHE_DURATION") or str(DEFAULT_CACHE_DURATION),
    )

    parser.add_argument(
        "--retry-delays",
        dest="retry_delays",
        type=str,
        help="Retry delays in seconds, e.g. 1,2,5 or exp:BASE:COUNT[:MAX] (default: 1,2,5)",
        default=os.environ.get("RETRY_DELAYS")
        or ",".join(f"{d:g}" for d in DEFAULT_RETRY_DELAYS),
    )

    parser.add_argument(
        "--fallback-price",
        dest="fallback_price",
        type=str,
        help=f"USD per ETH used when no source answers (default: {DEFAULT_FALLBACK_PRICE})",
        default=os.environ.get("FALLBACK_PRICE") or str(DEFAULT_FALLBACK_PRICE),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout override for every source in seconds (default: per source)",
        default=os.environ.get("FETCH_TIMEOUT") or None,
    )

    parser.add_argument(
        "--sla-address",
        dest="sla_address",
        type=str,
        help="Network SLA contract address (passed through to contract consumers)",
        default=os.environ.get("NETWORK_SLA_ADDRESS"),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., etherscan=abc,coingecko=demo:xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Fetch a single quote, print it and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.fast_period <= 0 or args.robust_period <= 0:
        parser.error("--fast-period and --robust-period must be positive")

    if args.cache_duration < 0:
        parser.error("--cache-duration must not be negative")

    if args.fetch_timeout is not None and args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    try:
        retry_delays = parse_delays(args.retry_delays)
    except ValueError as e:
        parser.error(f"--retry-delays: {e}")

    try:
        fallback_price = Decimal(args.fallback_price)
    except InvalidOperation:
        parser.error(f"--fallback-price is not a number: {args.fallback_price}")
    if not fallback_price.is_finite() or fallback_price <= 0:
        parser.error("--fallback-price must be a positive number")

    sources = [s.strip().lower() for s in args.sources.split(",") if s.strip()]
    if not sources:
        parser.error("At least one source must be specified")

    invalid_sources = [s for s in sources if s not in available_sources]
    if invalid_sources:
        parser.error(
            f"Unknown sources: {invalid_sources}. "
            f"Available: {', '.join(available_sources)}"
        )

    try:
        sla_address = resolve_contract_address(args.sla_address)
    except ValueError as e:
        parser.error(str(e))

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    # Log configuration
    logger.info("=" * 60)
    logger.info("ETH Price Feed")
    logger.info("=" * 60)
    logger.info(f"Sources:           {' > '.join(sources)}")
    logger.info(f"Fast Period:       {args.fast_period:g}s")
    logger.info(f"Robust Period:     {args.robust_period:g}s")
    logger.info(f"Cache Duration:    {args.cache_duration:g}s")
    logger.info(f"Retry Delays:      {', '.join(f'{d:g}s' for d in retry_delays) or 'none'}")
    logger.info(f"Fallback Price:    ${fallback_price}")
    if args.fetch_timeout is not None:
        logger.info(f"Fetch Timeout:     {args.fetch_timeout:g}s")
    if sla_address:
        logger.info(f"SLA Contract:      {sla_address}")
    if api_keys:
        logger.info(f"API Keys:          {', '.join(api_keys.keys())}")
    logger.info("=" * 60)

    try:
        scheduler = PriceScheduler.from_names(
            sources,
            api_keys=api_keys,
            fetch_timeout=args.fetch_timeout,
            fallback_price=fallback_price,
            fast_period=args.fast_period,
            robust_period=args.robust_period,
            cache_duration=args.cache_duration,
            retry_delays=retry_delays,
        )
        if args.once:
            state = asyncio.run(fetch_once(scheduler))
            print(f"{state.quote.value_usd_per_unit} {state.quote.source_name}")
            return

        scheduler.store.subscribe(_log_state_changes())
        asyncio.run(scheduler.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
