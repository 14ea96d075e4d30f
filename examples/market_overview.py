#!/usr/bin/env python3
"""
Example: Avantis market overview and trade estimate.

This example demonstrates how to:
1. Create an Avantis client from environment variables
2. Load the pair listing with retries and list pairs with their
   utilization, skew and directional bias
3. Select a pair and fetch its live Pyth price
4. Estimate collateral and liquidation price for a sample trade
5. Show group-level open interest and performance statistics

Fee, position and trade submission calls need a ChainReader and Signer
for Base; this script only uses the public pair listing and Hermes.

Prerequisites:
- Install avantis-client in development mode: pip install -e .

Usage:
    python examples/market_overview.py [PAIR]

Environment Variables (optional):
    PRIVATE_KEY=0x...   checked for format only, never used to sign
    RPC_URL=https://... checked for format only
    AVANTIS_CACHE_TTL=300
"""

import asyncio
import logging
import os
import re
import sys

from dotenv import load_dotenv

from avantis_client import AvantisClient, RetryConfig, TradeIntent, calculate_liquidation_price
from avantis_client.utils import retry_with_backoff, validate_url

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PRIVATE_KEY_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
SAMPLE_SIZE = 1000.0
SAMPLE_LEVERAGE = 10


def print_section_header(title: str):
    """Print a formatted section header."""
    print("\n" + "=" * 70)
    print(f" {title.upper()} ".center(70, "="))
    print("=" * 70)


def check_credentials() -> bool:
    """Validate optional credentials. Returns False if any is malformed."""
    private_key = os.getenv("PRIVATE_KEY")
    rpc_url = os.getenv("RPC_URL")

    if private_key and not PRIVATE_KEY_RE.match(private_key):
        logger.error("PRIVATE_KEY must be 0x followed by 64 hex characters")
        return False
    if rpc_url and not validate_url(rpc_url):
        logger.error(f"RPC_URL is not a valid HTTP(S) URL: {rpc_url}")
        return False
    return True


async def print_pairs(client: AvantisClient):
    print_section_header("Pairs")
    print(f"{'Pair':<12} {'Util %':>8} {'Skew %':>8} {'Bias':>8} {'Strength':>9}")

    utilization = await client.asset_metrics.get_utilization()
    biases = await client.blended.all_directional_bias()

    for instrument in await client.directory.pairs():
        bias = biases[instrument.index]
        print(
            f"{instrument.name:<12} {utilization[instrument.index]:>8.2f} "
            f"{bias.skew.asset_skew:>8.2f} {bias.direction.value:>8} {bias.strength:>9.2f}"
        )


async def print_trade_estimate(client: AvantisClient, pair: str):
    print_section_header(f"Sample trade on {pair}")
    instrument = await client.directory.get(pair)
    intent = TradeIntent(
        trader="0x" + "0" * 40,
        pair_index=instrument.index,
        position_size=SAMPLE_SIZE,
        leverage=SAMPLE_LEVERAGE,
        is_long=True,
    )

    price = await client.trade.current_price(instrument.index)
    liquidation = calculate_liquidation_price(price, intent.leverage, intent.is_long)
    spread = await client.asset_metrics.combined_opening_spread(instrument.index, SAMPLE_SIZE)

    print(f"Price:             {price:,.4f}")
    print(f"Position size:     {intent.position_size:,.2f} USDC at {intent.leverage}x")
    print(f"Collateral:        {intent.collateral:,.2f} USDC")
    print(f"Liquidation (est): {liquidation:,.4f}")
    print(f"Opening spread:    long {spread.long:.4f} bps / short {spread.short:.4f} bps")


async def print_groups(client: AvantisClient):
    print_section_header("Groups")
    snapshot = await client.snapshots.simplified_snapshot()
    names = await client.category_metrics.all_group_names()

    for group_index, group in snapshot.groups.items():
        print(
            f"{names[group_index]:<14} OI {group.open_interest.total:>14,.0f}  "
            f"skew {group.skew:6.2f}%"
        )


async def main() -> int:
    if not check_credentials():
        return 1

    pair = sys.argv[1] if len(sys.argv) > 1 else "ETH/USD"

    try:
        async with AvantisClient.from_env() as client:
            # First listing fetch is retried, later reads use the cache
            await retry_with_backoff(client.directory.refresh, RetryConfig(max_retries=2))
            await print_pairs(client)
            await print_trade_estimate(client, pair)
            await print_groups(client)

            stats = client.get_statistics()
            print_section_header("Statistics")
            print(f"External calls: {stats.total_calls} ({stats.failed_calls} failed)")
    except Exception as e:
        logger.error(f"Market overview failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
