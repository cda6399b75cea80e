"""Groth16 over BN254 for the R1CS built by ``ConstraintSystem``.

The QAP is interpolated column by column with ``galois.lagrange_poly`` and
every group operation goes through py_ecc, so this prover is a reference
implementation for small circuits; large circuits belong to an external
backend behind the same interface (see ``backend.py``).

Witness vectors are in ``ConstraintSystem.layout()`` order: ``[1, public...,
private...]``. The first ``1 + num_public`` entries are the verifier's inputs.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from functools import reduce
from typing import List, Optional, Sequence, Tuple

import galois
import numpy as np
from galois import Poly
from py_ecc.optimized_bn128 import optimized_curve as curve
from py_ecc.optimized_bn128 import G1, G2, Z1, Z2, add, curve_order, multiply, pairing

from .errors import ProofGenerationError
from .field import FP, p
from .r1cs import ConstraintSystem

logger = logging.getLogger(__name__)


class QAP:
    def __init__(self, L: galois.FieldArray, R: galois.FieldArray, O: galois.FieldArray, T: Poly,
                 num_public: int = 0):
        # rows are wires, columns are ascending polynomial coefficients
        self.L = L
        self.R = R
        self.O = O
        self.T = T
        self.num_public = num_public

    @property
    def num_wires(self) -> int:
        return self.L.shape[0]


@dataclass(frozen=True)
class ProverKey:
    tau_G1: Tuple
    tau_G2: Tuple
    alpha_G1: Tuple
    beta_G1: Tuple
    beta_G2: Tuple
    delta_G1: Tuple
    delta_G2: Tuple
    K_delta_G1: Tuple
    target_G1: Tuple


@dataclass(frozen=True)
class VerifierKey:
    alpha_G1: Tuple
    beta_G2: Tuple
    gamma_G2: Tuple
    delta_G2: Tuple
    K_gamma_G1: Tuple

    @property
    def num_public(self) -> int:
        # K_gamma also covers the constant wire
        return len(self.K_gamma_G1) - 1


@dataclass(frozen=True)
class Proof:
    A: Tuple
    B: Tuple
    C: Tuple


def interpolate_columns(m: galois.FieldArray) -> galois.FieldArray:
    """For each column of ``m``, the polynomial through ``(j + 1, m[j][i])``, as ascending coefficients."""
    n = m.shape[0]
    points_x = FP(np.arange(1, n + 1))
    poly_list = []
    for i in range(0, m.shape[1]):
        poly = galois.lagrange_poly(points_x, m[:, i])
        poly_list.append(poly.coefficients(n, order="asc"))
    return FP(poly_list)


def build_qap(cs: ConstraintSystem) -> QAP:
    if not cs.constraints:
        raise ValueError(f"constraint system '{cs.name}' has no constraints")
    L, R, O = cs.to_matrices()
    Lp, Rp, Op = (interpolate_columns(m) for m in (L, R, O))

    T = galois.Poly([1, p - 1], field=FP)
    for i in range(2, L.shape[0] + 1):
        T *= galois.Poly([1, p - i], field=FP)

    logger.debug("qap for %s: %d wires, T of degree %d", cs.name, Lp.shape[0], T.degree)
    return QAP(Lp, Rp, Op, T, num_public=len(cs.public_signals))


def _rand(rng: random.Random) -> galois.FieldArray:
    return FP(rng.randint(2, p - 1))


def keygen(qap: QAP, rng: Optional[random.Random] = None) -> Tuple[ProverKey, VerifierKey]:
    """Single-party setup; the toxic waste is drawn from ``rng`` and discarded."""
    rng = rng or random.SystemRandom()
    alpha = _rand(rng)
    beta = _rand(rng)
    gamma = _rand(rng)
    delta = _rand(rng)
    tau = _rand(rng)
    l = 1 + qap.num_public

    beta_L = beta * qap.L
    alpha_R = alpha * qap.R
    K = beta_L + alpha_R + qap.O
    Kp = to_poly(K)
    K_eval = evaluate_poly_list(Kp, tau)

    T_tau = qap.T(tau)

    pow_tauTtau_div_delta = [
        (tau ** i * T_tau) / delta for i in range(0, qap.T.degree - 1)
    ]
    target_G1 = [multiply(G1, int(pTd)) for pTd in pow_tauTtau_div_delta]

    K_gamma, K_delta = [k / gamma for k in K_eval[:l]], [k / delta for k in K_eval[l:]]

    # generating SRS
    tau_G1 = [multiply(G1, int(tau ** i)) for i in range(0, qap.T.degree)]
    tau_G2 = [multiply(G2, int(tau ** i)) for i in range(0, qap.T.degree)]
    alpha_G1 = multiply(G1, int(alpha))
    beta_G1 = multiply(G1, int(beta))
    beta_G2 = multiply(G2, int(beta))
    gamma_G2 = multiply(G2, int(gamma))
    delta_G1 = multiply(G1, int(delta))
    delta_G2 = multiply(G2, int(delta))
    K_gamma_G1 = [multiply(G1, int(k)) for k in K_gamma]
    K_delta_G1 = [multiply(G1, int(k)) for k in K_delta]

    pk = ProverKey(
        tuple(tau_G1),
        tuple(tau_G2),
        alpha_G1,
        beta_G1,
        beta_G2,
        delta_G1,
        delta_G2,
        tuple(K_delta_G1),
        tuple(target_G1),
    )
    vk = VerifierKey(alpha_G1, beta_G2, gamma_G2, delta_G2, tuple(K_gamma_G1))
    logger.info("generated keys: %d powers of tau, %d public inputs", len(tau_G1), qap.num_public)
    return pk, vk


def prove(pk: ProverKey, w: galois.FieldArray, qap: QAP, rng: Optional[random.Random] = None) -> Proof:
    if len(w) != qap.num_wires:
        raise ProofGenerationError(f"witness has {len(w)} entries, the circuit has {qap.num_wires} wires")
    rng = rng or random.SystemRandom()
    r = _rand(rng)
    s = _rand(rng)

    w_priv = w[len(w) - len(pk.K_delta_G1):]

    U = Poly((w @ qap.L)[::-1])
    V = Poly((w @ qap.R)[::-1])
    W = Poly((w @ qap.O)[::-1])

    H = (U * V - W) // qap.T
    rem = (U * V - W) % qap.T
    if rem != 0:
        raise ProofGenerationError("witness does not satisfy the QAP")

    # [K/δ*w]G1
    Kw_delta_G1 = reduce(
        add, (multiply(point, int(scaler)) for point, scaler in zip(pk.K_delta_G1, w_priv)), Z1
    )

    r_delta_G1 = multiply(pk.delta_G1, int(r))
    s_delta_G1 = multiply(pk.delta_G1, int(s))
    s_delta_G2 = multiply(pk.delta_G2, int(s))

    A_G1 = evaluate_poly(U, pk.tau_G1)
    A_G1 = add(A_G1, pk.alpha_G1)
    A_G1 = add(A_G1, r_delta_G1)

    B_G2 = evaluate_poly(V, pk.tau_G2, zero=Z2)
    B_G2 = add(B_G2, pk.beta_G2)
    B_G2 = add(B_G2, s_delta_G2)

    B_G1 = evaluate_poly(V, pk.tau_G1)
    B_G1 = add(B_G1, pk.beta_G1)
    B_G1 = add(B_G1, s_delta_G1)

    As_G1 = multiply(A_G1, int(s))
    Br_G1 = multiply(B_G1, int(r))
    rs_delta_G1 = multiply(pk.delta_G1, int(-r * s))

    HT_G1 = evaluate_poly(H, pk.target_G1)

    C_G1 = add(Kw_delta_G1, HT_G1)
    C_G1 = add(C_G1, As_G1)
    C_G1 = add(C_G1, Br_G1)
    C_G1 = add(C_G1, rs_delta_G1)

    return Proof(A_G1, B_G2, C_G1)


def verifier(vk: VerifierKey, w_pub: Sequence[int], proof: Proof) -> bool:
    """Check ``e(A, B) == e(α, β) · e(Σ K_γ·w_pub, γ) · e(C, δ)``; ``w_pub`` starts with the constant 1."""
    if len(w_pub) != len(vk.K_gamma_G1):
        raise ValueError(f"expected {len(vk.K_gamma_G1)} public values, got {len(w_pub)}")
    for name, point, b in (("A", proof.A, curve.b), ("B", proof.B, curve.b2), ("C", proof.C, curve.b)):
        if not curve.is_on_curve(point, b):
            logger.debug("proof element %s is not on the curve", name)
            return False
    if not in_g2_subgroup(proof.B):
        logger.debug("proof element B is not in the order-r subgroup of G2")
        return False

    e1 = pairing(proof.B, proof.A)
    e2 = pairing(vk.beta_G2, vk.alpha_G1)

    # [K/γ*w]G1
    Kw_gamma_G1 = reduce(
        add, (multiply(point, int(scaler)) for point, scaler in zip(vk.K_gamma_G1, w_pub)), Z1
    )

    e3 = pairing(vk.gamma_G2, Kw_gamma_G1)
    e4 = pairing(vk.delta_G2, proof.C)
    return e1 == e2 * e3 * e4


def in_g2_subgroup(point) -> bool:
    # the twist has a non-trivial cofactor; G1 has none
    return curve.is_inf(multiply(point, curve_order))


def to_poly(mtx) -> List[Poly]:
    poly_list = []
    for i in range(0, mtx.shape[0]):
        poly_list.append(Poly(mtx[i][::-1]))
    return poly_list


def evaluate_poly_list(poly_list, x) -> List:
    results = []
    for poly in poly_list:
        results.append(poly(x))
    return results


def evaluate_poly(poly: Poly, trusted_points: Sequence, zero=Z1):
    """``poly`` evaluated in the exponent: ``Σ coeff_i · trusted_points[i]``.

    ``zero`` is the identity of the group the points live in (``Z2`` for G2).
    """
    coeff = [int(c) for c in poly.coefficients(order="asc")]
    if len(coeff) > len(trusted_points):
        if any(coeff[len(trusted_points):]):
            raise ProofGenerationError(
                f"polynomial of degree {poly.degree} needs more than {len(trusted_points)} trusted points"
            )
        coeff = coeff[:len(trusted_points)]

    terms = (multiply(point, c) for point, c in zip(trusted_points, coeff) if c)
    return reduce(add, terms, zero)
