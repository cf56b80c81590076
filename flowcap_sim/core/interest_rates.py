#!/usr/bin/env python3
"""
Interest Rate Model Resolver

Maps a (protocol, asset) pair to a kinked borrow-rate curve. Protocol-specific
curves are looked up first; on a miss the asset is classified as stablecoin,
major or volatile and the category default is used. Every resolution carries a
provenance tag so callers can tell calibrated curves from fallbacks.
"""

from typing import Dict, Tuple

from .models import (
    AssetCategory, InterestRateModel, ModelType, Provenance, ResolvedRateModel
)
from ..utils.logging import get_logger

logger = get_logger(__name__)


STABLECOIN_SYMBOLS = ("USDT", "USDC", "BUSD", "DAI", "USDD", "TUSD", "FRAX")
MAJOR_SYMBOLS = ("BTC", "ETH", "BNB", "WBTC", "WETH", "WBNB")


class RateModelTables:
    """Calibrated curves: category defaults and protocol-specific overrides"""

    CATEGORY_DEFAULTS: Dict[AssetCategory, InterestRateModel] = {
        AssetCategory.STABLECOIN: InterestRateModel(
            model_type=ModelType.JUMP_RATE,
            base_rate=0.0,
            multiplier=0.04,
            jump_multiplier=0.60,
            kink=0.80,
            reserve_factor=0.10,
        ),
        AssetCategory.MAJOR: InterestRateModel(
            model_type=ModelType.JUMP_RATE,
            base_rate=0.0,
            multiplier=0.045,
            jump_multiplier=0.80,
            kink=0.75,
            reserve_factor=0.15,
        ),
        AssetCategory.VOLATILE: InterestRateModel(
            model_type=ModelType.JUMP_RATE,
            base_rate=0.02,
            multiplier=0.07,
            jump_multiplier=3.00,
            kink=0.45,
            reserve_factor=0.20,
        ),
    }

    # Keyed by (protocol, asset), both lower/upper normalised
    PROTOCOL_OVERRIDES: Dict[Tuple[str, str], InterestRateModel] = {
        ("venus", "USDT"): InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.048, 0.69, 0.80, 0.05),
        ("venus", "USDC"): InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.048, 0.69, 0.80, 0.05),
        ("venus", "BNB"): InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.056, 3.00, 0.70, 0.25),
        ("aave", "USDT"): InterestRateModel(ModelType.TWO_SLOPE, 0.0, 0.04, 0.60, 0.90, 0.10),
        ("aave", "USDC"): InterestRateModel(ModelType.TWO_SLOPE, 0.0, 0.04, 0.60, 0.90, 0.10),
        ("compound", "USDT"): InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.04, 0.80, 0.80, 0.10),
        ("compound", "USDC"): InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.04, 0.80, 0.80, 0.10),
    }


def categorize_asset(asset: str) -> AssetCategory:
    """Classify an asset symbol by substring match, stablecoins first"""
    symbol = asset.upper()
    if any(stable in symbol for stable in STABLECOIN_SYMBOLS):
        return AssetCategory.STABLECOIN
    if any(major in symbol for major in MAJOR_SYMBOLS):
        return AssetCategory.MAJOR
    return AssetCategory.VOLATILE


class InterestRateResolver:
    """Two-level lookup: protocol override, then category default"""

    def __init__(
        self,
        overrides: Dict[Tuple[str, str], InterestRateModel] = None,
        defaults: Dict[AssetCategory, InterestRateModel] = None
    ):
        self.overrides = dict(RateModelTables.PROTOCOL_OVERRIDES if overrides is None else overrides)
        self.defaults = dict(RateModelTables.CATEGORY_DEFAULTS if defaults is None else defaults)

    def resolve(self, protocol: str, asset: str) -> ResolvedRateModel:
        category = categorize_asset(asset)
        key = (protocol.lower(), asset.upper())

        specific = self.overrides.get(key)
        if specific is not None:
            resolved = ResolvedRateModel(specific, Provenance.SPECIFIC, category)
        else:
            resolved = ResolvedRateModel(self.defaults[category], Provenance.DEFAULT, category)

        logger.debug(
            "rate_model_resolved",
            protocol=protocol,
            asset=asset,
            provenance=resolved.provenance.value,
            category=category.value,
            model=describe_model(resolved.model),
        )
        return resolved


def borrow_apy(utilization: float, model: InterestRateModel) -> float:
    """Annual borrow rate (fraction) at the given utilization"""
    if model.model_type == ModelType.LINEAR or utilization <= model.kink:
        return model.base_rate + utilization * model.multiplier

    normal_rate = model.base_rate + model.kink * model.multiplier
    excess_utilization = utilization - model.kink
    return normal_rate + excess_utilization * model.jump_multiplier


def supply_apy(utilization: float, model: InterestRateModel) -> float:
    """Annual supply rate (fraction): borrowers' interest net of the reserve cut"""
    return borrow_apy(utilization, model) * utilization * (1 - model.reserve_factor)


def describe_model(model: InterestRateModel) -> str:
    return (
        f"{model.model_type.value}(base={model.base_rate * 100:.2f}%, "
        f"mult={model.multiplier * 100:.2f}%, jump={model.jump_multiplier * 100:.2f}%, "
        f"kink={model.kink * 100:.0f}%, rf={model.reserve_factor * 100:.0f}%)"
    )
