"""Tests for Decimal helpers and SpiritVolume (excise_kernel/domain/values.py)."""

from decimal import Decimal

import pytest

from excise_kernel.domain.values import (
    SpiritVolume,
    round2,
    round4,
    to_decimal,
    to_optional_decimal,
    within_tolerance,
)


class TestToDecimal:

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_none_and_empty_are_zero(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal("") == Decimal("0")

    def test_string_is_stripped(self):
        assert to_decimal(" 12.50 ") == Decimal("12.50")

    @pytest.mark.parametrize("bad", ["abc", True, float("nan"), "Infinity"])
    def test_rejects_non_numbers(self, bad):
        with pytest.raises(ValueError):
            to_decimal(bad, "qty")

    def test_optional_keeps_none(self):
        assert to_optional_decimal(None) is None
        assert to_optional_decimal("") is None
        assert to_optional_decimal("3") == Decimal("3")


class TestRounding:

    def test_round2_half_up(self):
        assert round2(Decimal("21.375")) == Decimal("21.38")
        assert round2(Decimal("-21.375")) == Decimal("-21.38")

    def test_round4(self):
        assert round4(Decimal("0.93376")) == Decimal("0.9338")

    def test_within_tolerance_is_strict(self):
        assert within_tolerance(Decimal("1.00"), Decimal("1.009"), Decimal("0.01"))
        assert not within_tolerance(Decimal("1.00"), Decimal("1.01"), Decimal("0.01"))


class TestSpiritVolume:

    def test_arithmetic(self):
        a = SpiritVolume(Decimal("100"), Decimal("40"))
        b = SpiritVolume(Decimal("30.5"), Decimal("12.25"))

        assert a + b == SpiritVolume(Decimal("130.5"), Decimal("52.25"))
        assert a - b == SpiritVolume(Decimal("69.5"), Decimal("27.75"))
        assert -a == SpiritVolume(Decimal("-100"), Decimal("-40"))

    def test_rounded(self):
        v = SpiritVolume(Decimal("1.005"), Decimal("2.004"))
        assert v.rounded() == SpiritVolume(Decimal("1.01"), Decimal("2.00"))

    def test_zero(self):
        assert SpiritVolume.zero().is_zero
        assert not SpiritVolume(Decimal("0"), Decimal("0.01")).is_zero

    def test_coerces_inputs(self):
        assert SpiritVolume("1.5", 2).bl == Decimal("1.5")

    def test_rejects_mixed_arithmetic(self):
        with pytest.raises(TypeError):
            SpiritVolume.zero() + Decimal("1")

    def test_str(self):
        assert str(SpiritVolume(Decimal("1.00"), Decimal("0.40"))) == "1.00 BL / 0.40 AL"
