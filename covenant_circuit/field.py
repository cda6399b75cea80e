"""BN254 scalar field used by every circuit in this package."""

from __future__ import annotations

import os
import tempfile

cache_dir = os.path.join(tempfile.gettempdir(), "numba_cache")
os.makedirs(cache_dir, exist_ok=True)
os.environ.setdefault("NUMBA_CACHE_DIR", cache_dir)

import galois  # noqa: E402
from py_ecc.optimized_bn128 import curve_order  # noqa: E402

from .errors import MalformedFieldValue  # noqa: E402

# p = 21888242871839275222246405745257275088548364400416034343698204186575808495617
p = curve_order
# 5 generates the multiplicative group; passing it skips factoring p - 1 on import
GENERATOR = 5
FP = galois.GF(p, primitive_element=GENERATOR, verify=False)


def to_int(value):
    if isinstance(value, str):
        value = value.strip()
        base = 16 if value.lower().startswith("0x") else 10
        return int(value, base)
    return int(value)


def parse_field_value(value, name: str = "value") -> int:
    """Parse a caller-supplied value into its canonical representative in [0, p)."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise MalformedFieldValue(name, value, "expected an integer or a numeric string")
    try:
        parsed = to_int(value)
    except ValueError:
        raise MalformedFieldValue(name, value, "not a number") from None
    if not 0 <= parsed < p:
        raise MalformedFieldValue(name, value, "outside the field range [0, p)")
    return parsed


def fp_to_int(value) -> int:
    return int(value) % p


def inverse_or_zero(value: int) -> int:
    # 0 has no inverse; the gadgets rely on it mapping to 0
    return pow(value, p - 2, p)


def to_field_vector(values) -> galois.FieldArray:
    return FP([int(v) % p for v in values])


def to_decimal(value) -> str:
    return str(fp_to_int(value))
