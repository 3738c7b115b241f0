"""Tests for the compound "Total Qty" aggregator."""

import dataclasses
from decimal import Decimal

import pytest

from catering.services.errors import UnknownMeasurementUnit
from catering.services.measurement_catalog import (
    DEFAULT_MEASUREMENTS,
    DOZEN,
    GRAM,
    KILOGRAM,
    LITRE,
    MILLILITRE,
    PIECE,
    QUINTAL,
    LanguageType,
    MeasurementCatalog,
)
from catering.services.quantity_aggregator import QuantityAggregator, QuantityEntry, format_quantity
from catering.services.unit_conversion_service import UnitConversionService


def _aggregator(catalog):
    return QuantityAggregator(UnitConversionService(catalog))


def _catalog_with(unit_id, **overrides):
    return MeasurementCatalog([
        dataclasses.replace(u, **overrides) if u.id == unit_id else u
        for u in DEFAULT_MEASUREMENTS
    ])


@pytest.fixture
def aggregator(catalog):
    return _aggregator(catalog)


class TestAggregate:
    def test_empty_input(self, aggregator):
        assert aggregator.aggregate([]) == ""

    def test_fractional_kilograms(self, aggregator):
        entries = [(Decimal("0.3"), KILOGRAM), (Decimal("0.3"), KILOGRAM), (Decimal("0.5"), KILOGRAM)]
        assert aggregator.aggregate(entries) == "1.100 Kg"

    def test_grams_below_one_kilogram(self, aggregator):
        assert aggregator.aggregate([(200, GRAM), (300, GRAM)]) == "500 Gm"

    def test_grams_reaching_a_kilogram(self, aggregator):
        assert aggregator.aggregate([(600, GRAM), (650, GRAM)]) == "1.250 Kg"

    def test_whole_kilograms_have_no_decimals(self, aggregator):
        assert aggregator.aggregate([(2, KILOGRAM)]) == "2 Kg"

    def test_auto_decimals_when_fractional(self, aggregator):
        assert aggregator.aggregate([(Decimal("2.25"), KILOGRAM)]) == "2.250 Kg"

    def test_small_total_moves_to_finer_unit(self, aggregator):
        assert aggregator.aggregate([(Decimal("0.5"), KILOGRAM)]) == "500 Gm"

    def test_mixed_units_sorted_by_id(self, aggregator):
        entries = [(3, PIECE), (Decimal("1.5"), KILOGRAM), (500, GRAM), (250, MILLILITRE)]
        assert aggregator.aggregate(entries) == "2 Kg, 250 Ml, 3 Pcs"

    def test_litres(self, aggregator):
        assert aggregator.aggregate([(Decimal("1.5"), LITRE), (500, MILLILITRE)]) == "2 Ltr"

    def test_zero_buckets_dropped(self, aggregator):
        assert aggregator.aggregate([(0, KILOGRAM), (3, PIECE)]) == "3 Pcs"
        assert aggregator.aggregate([(0, KILOGRAM)]) == ""

    def test_non_base_count_unit_reports_in_base(self, aggregator):
        assert aggregator.aggregate([(1, DOZEN), (3, PIECE)]) == "15 Pcs"

    def test_quintal_reports_in_kilograms(self, aggregator):
        assert aggregator.aggregate([(1, QUINTAL)]) == "100 Kg"

    def test_no_thousands_separator(self, aggregator):
        assert aggregator.aggregate([(1234567, GRAM)]) == "1234.567 Kg"

    def test_filter_by_raw_material(self, aggregator):
        entries = [
            QuantityEntry(Decimal("1"), KILOGRAM, raw_material_id=1),
            QuantityEntry(Decimal("5"), PIECE, raw_material_id=2),
            (Decimal("0.5"), KILOGRAM, 1),
        ]
        assert aggregator.aggregate(entries, raw_material_id=1) == "1.500 Kg"
        assert aggregator.aggregate(entries, raw_material_id=2) == "5 Pcs"
        assert aggregator.aggregate(entries, raw_material_id=3) == ""

    def test_deterministic(self, aggregator):
        entries = [(3, PIECE), (2, KILOGRAM), (250, MILLILITRE)]
        assert aggregator.aggregate(entries) == aggregator.aggregate(list(reversed(entries)))

    def test_unknown_unit_raises(self, aggregator):
        with pytest.raises(UnknownMeasurementUnit):
            aggregator.aggregate([(5, 99)])

    def test_aggregate_or_blank(self, aggregator):
        assert aggregator.aggregate_or_blank([(5, 99)]) == ""
        assert aggregator.aggregate_or_blank([(2, KILOGRAM)]) == "2 Kg"


class TestDecimalRules:
    def test_fixed_limit_rounds_half_up(self):
        aggregator = _aggregator(_catalog_with(PIECE, decimal_limit_qty=2))
        assert aggregator.aggregate([(Decimal("2.345"), PIECE)]) == "2.35 Pcs"

    def test_auto_limit_on_plain_unit_means_zero(self):
        aggregator = _aggregator(_catalog_with(PIECE, decimal_limit_qty=-1))
        assert aggregator.aggregate([(Decimal("2.5"), PIECE)]) == "3 Pcs"

    def test_format_quantity(self, catalog):
        assert format_quantity(Decimal("1.1"), catalog.get(KILOGRAM)) == "1.100"
        assert format_quantity(Decimal("3.0"), catalog.get(KILOGRAM)) == "3"
        assert format_quantity(Decimal("499.6"), catalog.get(GRAM)) == "500"


class TestLanguages:
    def test_preferred_symbol(self):
        aggregator = _aggregator(_catalog_with(KILOGRAM, symbol_prefer_lang="किलो"))
        assert aggregator.aggregate([(2, KILOGRAM)], lang=LanguageType.PREFER) == "2 किलो"

    def test_falls_back_to_default_symbol(self):
        aggregator = _aggregator(_catalog_with(KILOGRAM, symbol_prefer_lang="किलो"))
        assert aggregator.aggregate([(2, KILOGRAM)], lang=LanguageType.SUPPORTIVE) == "2 Kg"
