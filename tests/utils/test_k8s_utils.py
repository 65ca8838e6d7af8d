# tests/utils/test_k8s_utils.py

from decimal import Decimal

import pytest

from karpenter_ovhcloud.utils.k8s_utils import format_quantity, parse_quantity, subtract_resources


@pytest.mark.parametrize(
    "quantity, expected",
    [
        ("2", Decimal(2)),
        ("100m", Decimal("0.1")),
        ("8Gi", Decimal(8 * 1024**3)),
        ("100Mi", Decimal(100 * 1024**2)),
        ("1k", Decimal(1000)),
        (None, Decimal(0)),
        (4, Decimal(4)),
        ("garbage", Decimal(0)),
    ],
)
def test_parse_quantity(quantity, expected):
    assert parse_quantity(quantity) == expected


def test_format_quantity():
    assert format_quantity("cpu", Decimal(2)) == "2"
    assert format_quantity("cpu", Decimal("7.9")) == "7900m"
    assert format_quantity("memory", Decimal(8 * 1024**3)) == "8Gi"
    assert format_quantity("memory", Decimal(8092 * 1024**2)) == "8092Mi"
    assert format_quantity("pods", Decimal(110)) == "110"
    assert format_quantity("memory", Decimal(-1)) == "0"


def test_subtract_resources():
    capacity = {"cpu": "8", "memory": "8Gi", "pods": "110", "nvidia.com/gpu": "1"}
    reserved = {"cpu": "100m", "memory": "100Mi"}

    assert subtract_resources(capacity, reserved) == {
        "cpu": "7900m",
        "memory": "8092Mi",
        "pods": "110",
        "nvidia.com/gpu": "1",
    }


def test_subtract_resources_mib_capacity():
    assert subtract_resources({"memory": "4000Mi"}, {"memory": "100Mi"}) == {"memory": "3900Mi"}
