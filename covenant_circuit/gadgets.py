"""Boolean, selection and accumulator gadgets.

Each gadget emits a number of constraints that depends only on its static
arguments (array length, bit width), never on witness values. Boolean results
are 0/1 wires; ``all_of`` and ``any_of`` expect boolean inputs, which every
gadget here produces.
"""

from __future__ import annotations

from typing import List, Sequence

from .field import inverse_or_zero, p
from .r1cs import ConstraintSystem, LinearCombination, Term, as_lc

MAX_BIT_WIDTH = p.bit_length() - 2


def is_zero(cs: ConstraintSystem, a: Term, label: str = "is_zero") -> Term:
    """1 iff ``a == 0``.

    With ``inv`` the hinted inverse of ``a`` (0 when ``a`` is 0):
    ``a * inv = 1 - out`` and ``a * out = 0``.
    """
    a = as_lc(a)
    known = a.constant_value()
    if known is not None:
        return 1 if known == 0 else 0
    inv = cs.witness(lambda get: inverse_or_zero(get(a)))
    out = cs.witness(lambda get: 1 if get(a) == 0 else 0)
    cs.constrain(a, inv, 1 - out, label=label)
    cs.constrain(a, out, 0, label=label)
    return out


def equal(cs: ConstraintSystem, a: Term, b: Term, label: str = "equal") -> Term:
    return is_zero(cs, as_lc(a) - b, label=label)


def to_bits(cs: ConstraintSystem, a: Term, n: int, label: str = "to_bits") -> List[Term]:
    """Little-endian bits of ``a``; unsatisfiable unless ``0 <= a < 2**n``."""
    if not 0 < n <= MAX_BIT_WIDTH + 1:
        raise ValueError(f"bit width must be in [1, {MAX_BIT_WIDTH + 1}], got {n}")
    a = as_lc(a)
    bits = cs.witness_array(lambda get: [get(a) >> i & 1 for i in range(n)], n)
    for bit in bits:
        cs.assert_bool(bit, label=label)
    cs.assert_equal(sum(bit * (1 << i) for i, bit in enumerate(bits)), a, label=label)
    return bits


def range_check(cs: ConstraintSystem, a: Term, n: int, label: str = "range") -> None:
    to_bits(cs, a, n, label=label)


def less_than(cs: ConstraintSystem, a: Term, b: Term, bit_width: int, label: str = "less_than") -> Term:
    """1 iff ``a < b``.

    Decomposes ``a - b + 2**bit_width`` into ``bit_width + 1`` bits and returns
    the complement of the top bit. Only meaningful when both operands already
    lie in ``[0, 2**bit_width)``; the comparator does not check that, callers
    range-check their operands first.
    """
    if not 0 < bit_width <= MAX_BIT_WIDTH:
        raise ValueError(f"bit width must be in [1, {MAX_BIT_WIDTH}], got {bit_width}")
    bits = to_bits(cs, as_lc(a) - b + (1 << bit_width), bit_width + 1, label=label)
    return 1 - bits[bit_width]


def selector(cs: ConstraintSystem, index: Term, n: int, strict: bool = False,
             label: str = "selector") -> List[Term]:
    """One-hot flags ``[index == 0, ..., index == n - 1]``.

    With ``strict`` the flags must sum to 1, which rejects an out-of-range index
    instead of silently selecting nothing.
    """
    flags = [equal(cs, index, i, label=label) for i in range(n)]
    if strict:
        cs.assert_equal(sum_of(cs, flags), 1, label=f"{label} in range")
    return flags


def select_with(cs: ConstraintSystem, arr: Sequence, flags: Sequence[Term], label: str = "select"):
    if len(arr) != len(flags):
        raise ValueError(f"array of length {len(arr)} selected with {len(flags)} flags")
    if arr and isinstance(arr[0], (list, tuple)):
        width = len(arr[0])
        if any(len(row) != width for row in arr):
            raise ValueError("rows of a selected array must have equal length")
        return [select_with(cs, [row[j] for row in arr], flags, label=label) for j in range(width)]
    return sum_of(cs, [cs.mul(flag, item, label=label) for flag, item in zip(flags, arr)])


def array_select(cs: ConstraintSystem, arr: Sequence, index: Term, strict: bool = False,
                 label: str = "array_select"):
    """``arr[index]`` for a private index, as ``sum(eq_i * arr[i])``.

    ``arr`` may hold rows (lists of equal length); each position is selected with
    the same one-hot flags. An out-of-range index yields 0 unless ``strict``.
    """
    flags = selector(cs, index, len(arr), strict=strict, label=label)
    return select_with(cs, arr, flags, label=label)


def array_equal(cs: ConstraintSystem, xs: Sequence[Term], ys: Sequence[Term],
                label: str = "array_equal") -> Term:
    if len(xs) != len(ys):
        raise ValueError(f"cannot compare arrays of length {len(xs)} and {len(ys)}")
    return all_of(cs, [equal(cs, x, y, label=label) for x, y in zip(xs, ys)], label=label)


def all_of(cs: ConstraintSystem, bools: Sequence[Term], label: str = "all_of") -> Term:
    # acc[0] = 1, acc[i+1] = acc[i] * b[i]
    acc: Term = 1
    for b in bools:
        acc = cs.mul(acc, b, label=label)
    return acc


def any_of(cs: ConstraintSystem, bools: Sequence[Term], label: str = "any_of") -> Term:
    # acc[0] = 0, acc[i+1] = acc[i] + b[i] - acc[i] * b[i]
    acc: Term = 0
    for b in bools:
        acc = as_lc(acc) + b - cs.mul(acc, b, label=label)
    return acc


def sum_of(cs: ConstraintSystem, values: Sequence[Term]) -> LinearCombination:
    acc = LinearCombination()
    for value in values:
        acc = acc + value
    return acc
