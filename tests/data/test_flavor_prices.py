# tests/data/test_flavor_prices.py

import pytest

from karpenter_ovhcloud.data.flavor_prices import DEFAULT_HOURLY_PRICE, estimate_from_resources, estimate_price


def test_table_wins_over_resources():
    assert estimate_price("b3-8", vcpus=64, memory_gib=512) == 0.0340


def test_resources_estimate_for_unknown_flavor():
    assert estimate_price("z9-4", vcpus=4, memory_gib=16, gpus=1) == pytest.approx(0.08 + 0.08 + 0.50)
    assert estimate_from_resources(2, 8) == pytest.approx(0.08)


def test_flat_default_when_nothing_is_known():
    assert estimate_price("mystery") == DEFAULT_HOURLY_PRICE
