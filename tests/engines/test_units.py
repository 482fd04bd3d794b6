"""
Tests for unit conversions.

Covers:
- Bottle counts to bulk litres and absolute litres
- Mass/volume via density
- Temperature corrections
- Strength band mapping
"""

from decimal import Decimal

import pytest

from excise_engines.units import (
    bottles_to_absolute,
    bottles_to_volume,
    density_at_temperature,
    mass_to_volume,
    strength_band_for,
    strength_from_volumes,
    temperature_correction,
    volume_to_absolute,
    volume_to_bottles,
    volume_to_mass,
)
from excise_kernel.domain.registers import BottleSize, StrengthBand


class TestBottlesToVolume:

    def test_mixed_sizes(self):
        counts = {750: 100, 375: 10, 180: 3}
        # 75 + 3.75 + 0.54
        assert bottles_to_volume(counts) == Decimal("79.29")

    def test_accepts_enum_and_string_keys(self):
        assert bottles_to_volume({BottleSize.ML_600: 5, "500": 2}) == Decimal("4.00")

    def test_unknown_sizes_and_non_positive_counts_ignored(self):
        assert bottles_to_volume({1000: 5, 750: 0, 500: -3}) == Decimal("0.00")

    def test_empty(self):
        assert bottles_to_volume({}) == Decimal("0")
        assert bottles_to_volume(None) == Decimal("0")

    def test_absolute(self):
        assert bottles_to_absolute({500: 4975}, Decimal("40")) == Decimal("995.00")


class TestVolumeToAbsolute:

    def test_basic(self):
        assert volume_to_absolute(Decimal("5434.78"), Decimal("42.5")) == Decimal("2309.78")

    @pytest.mark.parametrize("bl, strength", [("0", "40"), ("-5", "40"), ("100", "0")])
    def test_non_positive_gives_zero(self, bl, strength):
        assert volume_to_absolute(bl, strength) == Decimal("0")


class TestMassAndDensity:

    def test_mass_to_volume(self):
        assert mass_to_volume(Decimal("5000"), Decimal("0.92")) == Decimal("5434.78")

    def test_zero_density_gives_zero(self):
        assert mass_to_volume(Decimal("5000"), Decimal("0")) == Decimal("0")

    def test_volume_to_mass(self):
        assert volume_to_mass(Decimal("1000"), Decimal("0.9480")) == Decimal("948.00")

    def test_strength_from_volumes(self):
        assert strength_from_volumes(Decimal("995"), Decimal("2487.5")) == Decimal("40.00")
        assert strength_from_volumes(Decimal("1"), Decimal("0")) == Decimal("0")


class TestTemperature:

    def test_correction_above_standard_shrinks(self):
        # 1 - 0.001 x 5
        assert temperature_correction(Decimal("1000"), Decimal("25")) == Decimal("995.00")

    def test_correction_below_standard_expands(self):
        assert temperature_correction(Decimal("1000"), Decimal("15")) == Decimal("1005.00")

    def test_missing_temperature_unchanged(self):
        assert temperature_correction(Decimal("1000"), None) == Decimal("1000")

    def test_density_at_temperature(self):
        assert density_at_temperature(Decimal("0.9200"), Decimal("25")) == Decimal("0.9246")

    def test_custom_target(self):
        assert temperature_correction(Decimal("1000"), Decimal("27"), target_temp=Decimal("27")) == Decimal("1000.00")


class TestVolumeToBottles:

    def test_rounds_down(self):
        assert volume_to_bottles(Decimal("10"), 750) == 13

    def test_unknown_size(self):
        assert volume_to_bottles(Decimal("10"), 1000) == 0


class TestStrengthBand:

    @pytest.mark.parametrize(
        "strength, band",
        [
            ("30", StrengthBand.UP_50),
            ("28.5", StrengthBand.UP_50),
            ("25", StrengthBand.UP_50),
            ("24.99", StrengthBand.UP_60),
            ("20", StrengthBand.UP_60),
            ("17.1", StrengthBand.UP_70),
            ("15", StrengthBand.UP_70),
            ("11.4", StrengthBand.UP_80),
            ("10", StrengthBand.UP_80),
        ],
    )
    def test_mapped(self, strength, band):
        assert strength_band_for(Decimal(strength)) is band

    @pytest.mark.parametrize("strength", ["30.01", "9.99", "0", "42.8"])
    def test_unmapped(self, strength):
        assert strength_band_for(Decimal(strength)) is None
