"""MiMC-7 hashing, natively and as a circuit.

The block cipher runs 91 rounds of ``x <- (x + k + c_i)^7`` over the BN254
scalar field (x^7 is a permutation there since 7 does not divide p - 1) and
adds the key once more at the end. Messages of several elements are compressed
Miyaguchi-Preneel style: ``h <- E_h(m) + h + m``.

Round constants are ``c_0 = 0`` and ``c_i = sha256(seed || i) mod p``.
"""

from __future__ import annotations

import hashlib
from typing import Sequence, Tuple

from .field import p
from .r1cs import ConstraintSystem, Term, as_lc

MIMC_ROUNDS = 91
MIMC_EXPONENT = 7
MIMC_SEED = b"covenant_circuit.mimc7"
COMMITMENT_GROUP_SIZE = 8


def round_constants(rounds: int = MIMC_ROUNDS, seed: bytes = MIMC_SEED) -> Tuple[int, ...]:
    constants = [0]
    for i in range(1, rounds):
        digest = hashlib.sha256(seed + i.to_bytes(4, "big")).digest()
        constants.append(int.from_bytes(digest, "big") % p)
    return tuple(constants)


ROUND_CONSTANTS = round_constants()


def mimc_encrypt(x: int, k: int, constants: Sequence[int] = ROUND_CONSTANTS) -> int:
    for c in constants:
        x = pow((x + k + c) % p, MIMC_EXPONENT, p)
    return (x + k) % p


def mimc_hash(values: Sequence[int], key: int = 0) -> int:
    h = key % p
    for value in values:
        h = (mimc_encrypt(value % p, h) + h + value) % p
    return h


def commit_chunks(values: Sequence[int], group_size: int = COMMITMENT_GROUP_SIZE) -> int:
    """Hash ``values`` in groups of ``group_size``, then hash the group digests."""
    if group_size < 1:
        raise ValueError("group size must be positive")
    values = list(values)
    digests = [mimc_hash(values[i:i + group_size]) for i in range(0, len(values), group_size)]
    return mimc_hash(digests)


def _pow7(cs: ConstraintSystem, t: Term) -> Term:
    t2 = cs.mul(t, t, label="mimc")
    t4 = cs.mul(t2, t2, label="mimc")
    t6 = cs.mul(t4, t2, label="mimc")
    return cs.mul(t6, t, label="mimc")


def mimc_encrypt_circuit(cs: ConstraintSystem, x: Term, k: Term,
                         constants: Sequence[int] = ROUND_CONSTANTS) -> Term:
    k = as_lc(k)
    for c in constants:
        x = _pow7(cs, as_lc(x) + k + c)
    return as_lc(x) + k


def mimc_hash_circuit(cs: ConstraintSystem, values: Sequence[Term], key: Term = 0) -> Term:
    h = as_lc(key)
    for value in values:
        h = as_lc(mimc_encrypt_circuit(cs, value, h)) + h + value
    return h


def commit_chunks_circuit(cs: ConstraintSystem, values: Sequence[Term],
                          group_size: int = COMMITMENT_GROUP_SIZE) -> Term:
    if group_size < 1:
        raise ValueError("group size must be positive")
    values = list(values)
    digests = [mimc_hash_circuit(cs, values[i:i + group_size]) for i in range(0, len(values), group_size)]
    return mimc_hash_circuit(cs, digests)
