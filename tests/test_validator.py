"""Tests for record usability checks."""

from food_engine.services.validator import has_energy, is_usable
from tests.conftest import nutella_product


def test_complete_record_is_usable() -> None:
    assert is_usable(nutella_product())


def test_record_without_energy_is_rejected() -> None:
    record = {"product_name": "Water", "nutriments": {"proteins_100g": 0}}

    assert not has_energy(record)
    assert not is_usable(record)


def test_record_without_name_is_rejected() -> None:
    record = {"product_name": "  ", "nutriments": {"energy-kcal_100g": 100}}

    assert not is_usable(record)


def test_record_missing_name_and_energy_is_rejected() -> None:
    assert not is_usable({"code": "123"})


def test_any_recognized_energy_field_counts() -> None:
    for field in (
        "energy-kcal_100g",
        "energy_100g",
        "energy-kcal",
        "energy",
        "energy-kcal_serving",
    ):
        assert is_usable({"generic_name": "Thing", "nutriments": {field: 10}})


def test_non_numeric_energy_does_not_count() -> None:
    assert not is_usable({"product_name": "Thing", "nutriments": {"energy": "n/a"}})
    assert not is_usable({"product_name": "Thing", "nutriments": "broken"})
