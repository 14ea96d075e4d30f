"""
Loss protection parameters.

Loss protection refunds part of a losing trade's collateral depending on
its tier. Reads are best-effort: the tier degrades to 0 and the percentage
falls back to a fixed table.
"""

from .chain import ContractReader
from .constants import (
    LOSS_PROTECTION_DEFAULT_PERCENTAGE,
    LOSS_PROTECTION_MAJOR_PAIRS,
    LOSS_PROTECTION_MAJOR_PERCENTAGE,
    LOSS_PROTECTION_MAJOR_TIERS,
)
from .fee_engine import FeeEngine
from .models.config import ContractAddresses
from .models.trade import LossProtectionInfo, TradeIntent
from .utils import calculate_effective_collateral, to_usdc_units


def fallback_loss_protection_percentage(tier: int, pair_index: int) -> float:
    """Loss protection percentage used when the on-chain read fails."""
    if pair_index in LOSS_PROTECTION_MAJOR_PAIRS and tier in LOSS_PROTECTION_MAJOR_TIERS:
        return LOSS_PROTECTION_MAJOR_PERCENTAGE
    if tier >= 1:
        return LOSS_PROTECTION_DEFAULT_PERCENTAGE
    return 0.0


class TradingParameters:
    """Loss protection tiers and percentages."""

    def __init__(
        self,
        contracts: ContractReader,
        addresses: ContractAddresses,
        fees: FeeEngine,
    ):
        self._contracts = contracts
        self._addresses = addresses
        self._fees = fees

    async def loss_protection_tier(self, intent: TradeIntent) -> int:
        tier = await self._contracts.read(
            self._addresses.trading_callbacks,
            "getLossProtectionTier",
            intent.pair_index,
            to_usdc_units(intent.position_size),
            int(intent.leverage),
            intent.is_long,
            fallback=0,
        )
        return int(tier)

    async def loss_protection_percentage_by_tier(self, tier: int, pair_index: int) -> float:
        percentage = await self._contracts.read(
            self._addresses.trading_callbacks,
            "getLossProtectionPercentage",
            tier,
            pair_index,
            fallback=None,
        )
        if percentage is None:
            return fallback_loss_protection_percentage(tier, pair_index)
        return float(percentage)

    async def loss_protection_percentage(self, intent: TradeIntent) -> float:
        tier = await self.loss_protection_tier(intent)
        return await self.loss_protection_percentage_by_tier(tier, intent.pair_index)

    async def loss_protection_for_intent(
        self,
        intent: TradeIntent,
        opening_fee_usdc: float,
    ) -> LossProtectionInfo:
        """Loss protection percentage and the USDC amount it covers."""
        percentage = await self.loss_protection_percentage(intent)
        effective_collateral = calculate_effective_collateral(intent.collateral, opening_fee_usdc)
        return LossProtectionInfo(
            percentage=percentage,
            amount=effective_collateral * percentage / 100,
        )

    async def referral_rebate_percentage(self, trader: str) -> float:
        return await self._fees.referral_rebate_percentage(trader)
