"""JSON encoding of Groth16 keys and proofs.

G1 points are ``[x, y]`` and G2 points ``[[x0, x1], [y0, y1]]``, all decimal
strings of affine coordinates; the point at infinity is encoded with zero
coordinates. Keys are loaded once and passed around as immutable handles.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from py_ecc.optimized_bn128 import optimized_curve as curve
from py_ecc.optimized_bn128 import Z1, Z2, field_modulus, normalize

from .errors import KeyLoadError
from .field import to_int
from .groth16 import Proof, ProverKey, VerifierKey

logger = logging.getLogger(__name__)

PROTOCOL = "groth16"
CURVE = "bn254"


def _fq_int(value) -> int:
    return int(getattr(value, "n", value))


def serialize_g1(point) -> list:
    if curve.is_inf(point):
        return ["0", "0"]
    x, y = normalize(point)
    return [str(_fq_int(x)), str(_fq_int(y))]


def serialize_g2(point) -> list:
    if curve.is_inf(point):
        return [["0", "0"], ["0", "0"]]
    x, y = normalize(point)
    return [
        [str(_fq_int(x.coeffs[0])), str(_fq_int(x.coeffs[1]))],
        [str(_fq_int(y.coeffs[0])), str(_fq_int(y.coeffs[1]))],
    ]


def _coordinate(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"coordinate must be a number, got {value!r}")
    parsed = to_int(value)
    if not 0 <= parsed < field_modulus:
        raise ValueError("coordinate is outside the base field")
    return parsed


def deserialize_g1(coords):
    if not isinstance(coords, list) or len(coords) != 2:
        raise ValueError("G1 point must have two coordinates.")
    x, y = (_coordinate(c) for c in coords)
    if x == 0 and y == 0:
        return Z1
    point = (curve.FQ(x), curve.FQ(y), curve.FQ.one())
    if not curve.is_on_curve(point, curve.b):
        raise ValueError("G1 point is not on the curve")
    return point


def deserialize_g2(coords):
    if not isinstance(coords, list) or len(coords) != 2 or any(
        not isinstance(c, list) or len(c) != 2 for c in coords
    ):
        raise ValueError("G2 point must have two FQ2 coordinates.")
    x_coeffs = [_coordinate(c) for c in coords[0]]
    y_coeffs = [_coordinate(c) for c in coords[1]]
    if not any(x_coeffs) and not any(y_coeffs):
        return Z2
    point = (curve.FQ2(x_coeffs), curve.FQ2(y_coeffs), curve.FQ2.one())
    if not curve.is_on_curve(point, curve.b2):
        raise ValueError("G2 point is not on the curve")
    return point


def proving_key_to_dict(pk: ProverKey, circuit: str) -> Dict[str, Any]:
    return {
        "protocol": PROTOCOL,
        "curve": CURVE,
        "circuit": circuit,
        "tau_G1": [serialize_g1(pt) for pt in pk.tau_G1],
        "tau_G2": [serialize_g2(pt) for pt in pk.tau_G2],
        "alpha_G1": serialize_g1(pk.alpha_G1),
        "beta_G1": serialize_g1(pk.beta_G1),
        "beta_G2": serialize_g2(pk.beta_G2),
        "delta_G1": serialize_g1(pk.delta_G1),
        "delta_G2": serialize_g2(pk.delta_G2),
        "K_delta_G1": [serialize_g1(pt) for pt in pk.K_delta_G1],
        "target_G1": [serialize_g1(pt) for pt in pk.target_G1],
    }


def verification_key_to_dict(vk: VerifierKey, circuit: str) -> Dict[str, Any]:
    return {
        "protocol": PROTOCOL,
        "curve": CURVE,
        "circuit": circuit,
        "nPublic": vk.num_public,
        "alpha_G1": serialize_g1(vk.alpha_G1),
        "beta_G2": serialize_g2(vk.beta_G2),
        "gamma_G2": serialize_g2(vk.gamma_G2),
        "delta_G2": serialize_g2(vk.delta_G2),
        "K_gamma_G1": [serialize_g1(pt) for pt in vk.K_gamma_G1],
    }


def proof_to_dict(proof: Proof) -> Dict[str, Any]:
    return {
        "protocol": PROTOCOL,
        "curve": CURVE,
        "A": serialize_g1(proof.A),
        "B": serialize_g2(proof.B),
        "C": serialize_g1(proof.C),
    }


def _header(data: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise KeyLoadError(f"{kind} must be a JSON object")
    if data.get("protocol") != PROTOCOL or data.get("curve") != CURVE:
        raise KeyLoadError(f"{kind} is not a {PROTOCOL}/{CURVE} artifact")
    return data


def _points(data: Mapping[str, Any], key: str, decode):
    value = data[key]
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list of points")
    return tuple(decode(pt) for pt in value)


def proving_key_from_dict(data: Any) -> Tuple[ProverKey, str]:
    data = _header(data, "proving key")
    try:
        pk = ProverKey(
            _points(data, "tau_G1", deserialize_g1),
            _points(data, "tau_G2", deserialize_g2),
            deserialize_g1(data["alpha_G1"]),
            deserialize_g1(data["beta_G1"]),
            deserialize_g2(data["beta_G2"]),
            deserialize_g1(data["delta_G1"]),
            deserialize_g2(data["delta_G2"]),
            _points(data, "K_delta_G1", deserialize_g1),
            _points(data, "target_G1", deserialize_g1),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise KeyLoadError(f"malformed proving key: {exc}") from exc
    return pk, str(data.get("circuit", ""))


def verification_key_from_dict(data: Any) -> Tuple[VerifierKey, str]:
    data = _header(data, "verification key")
    try:
        vk = VerifierKey(
            deserialize_g1(data["alpha_G1"]),
            deserialize_g2(data["beta_G2"]),
            deserialize_g2(data["gamma_G2"]),
            deserialize_g2(data["delta_G2"]),
            _points(data, "K_gamma_G1", deserialize_g1),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise KeyLoadError(f"malformed verification key: {exc}") from exc
    if "nPublic" in data and data["nPublic"] != vk.num_public:
        raise KeyLoadError("verification key nPublic does not match its K_gamma_G1 entries")
    return vk, str(data.get("circuit", ""))


def proof_from_dict(data: Any) -> Proof:
    data = _header(data, "proof")
    try:
        return Proof(deserialize_g1(data["A"]), deserialize_g2(data["B"]), deserialize_g1(data["C"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise KeyLoadError(f"malformed proof: {exc}") from exc


def write_json(path, data: Any) -> None:
    path = Path(path)
    with path.open("w", encoding="utf-8") as outfile:
        json.dump(data, outfile, indent=2)
    logger.debug("wrote %s", path)


def read_json(path) -> Any:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as infile:
            return json.load(infile)
    except (OSError, json.JSONDecodeError) as exc:
        raise KeyLoadError(f"cannot read {path}: {exc}") from exc


def load_proving_key(path) -> Tuple[ProverKey, str]:
    pk, circuit = proving_key_from_dict(read_json(path))
    logger.info("loaded proving key for %r from %s", circuit, path)
    return pk, circuit


def load_verification_key(path) -> Tuple[VerifierKey, str]:
    vk, circuit = verification_key_from_dict(read_json(path))
    logger.info("loaded verification key for %r from %s", circuit, path)
    return vk, circuit


def load_proof(path) -> Proof:
    return proof_from_dict(read_json(path))
