"""Schnorr signatures over BN254 G1, used to authorize a transfer.

The circuit publishes the signing message and the spent input's owner key; the
signature is checked here, outside the constraint system. Public keys are
kept as affine coordinates that also fit the circuit's scalar field so they can
be carried as circuit signals.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from py_ecc.optimized_bn128 import optimized_curve as curve
from py_ecc.optimized_bn128 import G1, add, curve_order, field_modulus, multiply, normalize

from .errors import MalformedFieldValue
from .field import to_int, p

CHALLENGE_DOMAIN = b"covenant_circuit.schnorr.challenge"
NONCE_DOMAIN = b"covenant_circuit.schnorr.nonce"

PublicKey = Tuple[int, int]


def _fq_int(value):
    return int(getattr(value, "n", value))


def _affine(point) -> Tuple[int, int]:
    x, y = normalize(point)
    return _fq_int(x), _fq_int(y)


def _to_point(x: int, y: int):
    point = (curve.FQ(x), curve.FQ(y), curve.FQ.one())
    if not curve.is_on_curve(point, curve.b):
        raise ValueError("point is not on the curve")
    return point


def _encode(*values: int) -> bytes:
    return b"".join(int(v).to_bytes(32, "big") for v in values)


def _challenge(r: PublicKey, public_key: PublicKey, message: int) -> int:
    digest = hashlib.sha256(CHALLENGE_DOMAIN + _encode(*r, *public_key, message)).digest()
    return int.from_bytes(digest, "big") % curve_order


def _parse_bounded(value: Any, bound: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise MalformedFieldValue(name, value, "expected an integer or a numeric string")
    try:
        parsed = to_int(value)
    except ValueError:
        raise MalformedFieldValue(name, value, "not a number") from None
    if not 0 <= parsed < bound:
        raise MalformedFieldValue(name, value, "out of range")
    return parsed


@dataclass(frozen=True)
class Signature:
    r_x: int
    r_y: int
    s: int

    def to_dict(self) -> Dict[str, str]:
        return {"rx": str(self.r_x), "ry": str(self.r_y), "s": str(self.s)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Signature":
        if not isinstance(data, Mapping) or set(data) != {"rx", "ry", "s"}:
            raise MalformedFieldValue("signature", data, "expected an object with rx, ry and s")
        return cls(
            _parse_bounded(data["rx"], field_modulus, "signature.rx"),
            _parse_bounded(data["ry"], field_modulus, "signature.ry"),
            _parse_bounded(data["s"], curve_order, "signature.s"),
        )


@dataclass(frozen=True)
class KeyPair:
    secret: int
    public: PublicKey

    def __repr__(self) -> str:
        return f"KeyPair(public={self.public})"


def public_key_of(secret: int) -> PublicKey:
    return _affine(multiply(G1, secret % curve_order))


def generate_keypair(secret: int = None) -> KeyPair:
    """Create a key pair whose public coordinates are valid circuit field values.

    Random secrets whose public key does not fit the scalar field are
    resampled; an explicit ``secret`` with such a key raises ``ValueError``.
    """
    while True:
        candidate = secret if secret is not None else secrets.randbelow(curve_order - 1) + 1
        if not 0 < candidate < curve_order:
            raise ValueError("secret must be in [1, curve_order)")
        public = public_key_of(candidate)
        if public[0] < p and public[1] < p:
            return KeyPair(candidate, public)
        if secret is not None:
            raise ValueError("the public key of this secret does not fit the scalar field")


def sign(secret: int, message: int) -> Signature:
    """Sign a field element with a deterministic nonce."""
    public = public_key_of(secret)
    digest = hashlib.sha256(NONCE_DOMAIN + _encode(secret, message)).digest()
    k = int.from_bytes(digest, "big") % curve_order or 1
    r = _affine(multiply(G1, k))
    e = _challenge(r, public, message)
    return Signature(r[0], r[1], (k + e * secret) % curve_order)


def verify(public_key: PublicKey, message: int, signature: Signature) -> bool:
    """Check ``s*G == R + e*P`` with ``e = H(R, P, message)``."""
    try:
        point = _to_point(*public_key)
        r_point = _to_point(signature.r_x, signature.r_y)
    except ValueError:
        return False
    if not 0 < signature.s < curve_order:
        return False
    e = _challenge((signature.r_x, signature.r_y), tuple(public_key), message)
    return curve.eq(multiply(G1, signature.s), add(r_point, multiply(point, e)))
