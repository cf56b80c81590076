#!/usr/bin/env python3
"""
Interest Rate Model Test Suite

1. Kinked borrow curve: continuity at the kink, slopes on either side
2. Supply rate: zero at zero utilization and at a 100% reserve factor
3. Resolver: protocol overrides first, category defaults otherwise
"""

import pytest

from flowcap_sim.core.interest_rates import (
    InterestRateResolver, RateModelTables, borrow_apy, categorize_asset, describe_model, supply_apy
)
from flowcap_sim.core.models import AssetCategory, InterestRateModel, ModelType, Provenance
from flowcap_sim.exceptions import ValidationError


class TestBorrowAndSupplyCurves:
    """Kinked jump-rate curve behaviour"""

    def setup_method(self):
        self.model = InterestRateModel(
            model_type=ModelType.JUMP_RATE,
            base_rate=0.0,
            multiplier=0.04,
            jump_multiplier=0.60,
            kink=0.80,
            reserve_factor=0.10,
        )

    def test_continuous_at_kink(self):
        """Both branches agree at u == kink"""
        m = self.model
        below = m.base_rate + m.kink * m.multiplier
        above = m.base_rate + m.kink * m.multiplier + (m.kink - m.kink) * m.jump_multiplier
        assert borrow_apy(m.kink, m) == below == above

    def test_jump_slope_above_kink(self):
        m = self.model
        expected = m.kink * m.multiplier + (0.9 - m.kink) * m.jump_multiplier
        assert borrow_apy(0.9, m) == pytest.approx(expected)
        assert borrow_apy(0.9, m) > borrow_apy(0.8, m) + 0.1 * m.multiplier, "Slope must steepen past the kink"

    def test_linear_model_ignores_kink(self):
        linear = InterestRateModel(ModelType.LINEAR, 0.01, 0.05, 2.0, 0.5, 0.1)
        assert borrow_apy(0.9, linear) == pytest.approx(0.01 + 0.9 * 0.05)

    def test_supply_zero_at_zero_utilization(self):
        assert supply_apy(0.0, self.model) == 0.0

    def test_supply_zero_with_full_reserve_factor(self):
        full_reserve = InterestRateModel(ModelType.JUMP_RATE, 0.02, 0.04, 0.6, 0.8, 1.0)
        assert supply_apy(0.7, full_reserve) == 0.0

    def test_stablecoin_below_kink(self):
        """Mean utilization 0.75 with a 0.80 kink stays on the first slope"""
        expected = (0.0 + 0.75 * 0.04) * 0.75 * (1 - 0.10)
        assert supply_apy(0.75, self.model) == pytest.approx(expected)
        assert supply_apy(0.75, self.model) * 100 == pytest.approx(2.025)

    def test_invalid_kink_rejected(self):
        with pytest.raises(ValidationError):
            InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.04, 0.6, 1.0, 0.1)
        with pytest.raises(ValidationError):
            InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.04, 0.6, 0.8, 1.2)

    def test_describe_model(self):
        text = describe_model(self.model)
        assert text.startswith("JumpRate(")
        assert "kink=80%" in text


class TestInterestRateResolver:
    """Two-level lookup with provenance"""

    def setup_method(self):
        self.resolver = InterestRateResolver()

    def test_protocol_override_is_specific(self):
        resolved = self.resolver.resolve("Venus", "usdt")
        assert resolved.provenance == Provenance.SPECIFIC
        assert resolved.model == RateModelTables.PROTOCOL_OVERRIDES[("venus", "USDT")]
        assert resolved.category == AssetCategory.STABLECOIN

    def test_unknown_protocol_falls_back_to_category(self):
        resolved = self.resolver.resolve("lista-lending", "USDT")
        assert resolved.provenance == Provenance.DEFAULT
        assert resolved.model == RateModelTables.CATEGORY_DEFAULTS[AssetCategory.STABLECOIN]

    def test_volatile_default(self):
        resolved = self.resolver.resolve("venus", "CAKE")
        assert resolved.provenance == Provenance.DEFAULT
        assert resolved.category == AssetCategory.VOLATILE
        assert resolved.model.kink == 0.45

    def test_two_slope_override(self):
        resolved = self.resolver.resolve("aave", "USDC")
        assert resolved.model.model_type == ModelType.TWO_SLOPE
        assert resolved.model.kink == 0.90

    def test_injected_tables(self):
        custom = InterestRateModel(ModelType.CUSTOM, 0.01, 0.02, 0.3, 0.5, 0.2)
        resolver = InterestRateResolver(overrides={("lista-lending", "USDT"): custom})
        assert resolver.resolve("lista-lending", "USDT").model == custom
        assert resolver.resolve("venus", "USDT").provenance == Provenance.DEFAULT


class TestAssetCategorisation:

    @pytest.mark.parametrize("symbol,category", [
        ("USDT", AssetCategory.STABLECOIN),
        ("usdc.e", AssetCategory.STABLECOIN),
        ("WETH", AssetCategory.MAJOR),
        ("BNB", AssetCategory.MAJOR),
        ("CAKE", AssetCategory.VOLATILE),
    ])
    def test_categorize(self, symbol, category):
        assert categorize_asset(symbol) == category
