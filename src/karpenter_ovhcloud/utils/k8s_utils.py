from decimal import Decimal
from typing import Dict

_BINARY_SUFFIXES = {
    "Ki": 1024,
    "Mi": 1024**2,
    "Gi": 1024**3,
    "Ti": 1024**4,
    "Pi": 1024**5,
    "Ei": 1024**6,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("0.000000001"),
    "u": Decimal("0.000001"),
    "m": Decimal("0.001"),
    "k": Decimal(1000),
    "M": Decimal(1000**2),
    "G": Decimal(1000**3),
    "T": Decimal(1000**4),
    "P": Decimal(1000**5),
    "E": Decimal(1000**6),
}


def parse_quantity(quantity) -> Decimal:
    """
    Parse kubernetes quantity to Decimal.
    Adapted from kubernetes-python utils.
    """
    if quantity is None:
        return Decimal(0)
    if isinstance(quantity, (int, float, Decimal)):
        return Decimal(quantity)

    quantity = str(quantity)
    number = quantity
    multiplier = Decimal(1)
    if quantity[-2:] in _BINARY_SUFFIXES:
        number = quantity[:-2]
        multiplier = Decimal(_BINARY_SUFFIXES[quantity[-2:]])
    elif quantity[-1:] in _DECIMAL_SUFFIXES:
        number = quantity[:-1]
        multiplier = _DECIMAL_SUFFIXES[quantity[-1:]]

    try:
        value = Decimal(number)
    except Exception:
        return Decimal(0)

    return value * multiplier


def format_quantity(resource: str, value: Decimal) -> str:
    """
    Renders a parsed quantity back to a Kubernetes string.

    CPU is rendered in millicores, byte-sized resources in the largest binary
    suffix that divides the value exactly, everything else as an integer.
    """
    if value < 0:
        value = Decimal(0)
    if resource == "cpu":
        millicores = int(value * 1000)
        if millicores % 1000 == 0:
            return str(millicores // 1000)
        return f"{millicores}m"
    if resource in ("memory", "ephemeral-storage"):
        as_int = int(value)
        for suffix in ("Gi", "Mi", "Ki"):
            unit = _BINARY_SUFFIXES[suffix]
            if as_int and as_int % unit == 0:
                return f"{as_int // unit}{suffix}"
        return str(as_int)
    return str(int(value))


def subtract_resources(capacity: Dict[str, str], reserved: Dict[str, str]) -> Dict[str, str]:
    """Returns capacity minus reserved, per resource, floored at zero."""
    result = {}
    for resource, quantity in capacity.items():
        if resource not in reserved:
            result[resource] = quantity
            continue
        remaining = parse_quantity(quantity) - parse_quantity(reserved[resource])
        result[resource] = format_quantity(resource, remaining)
    return result
