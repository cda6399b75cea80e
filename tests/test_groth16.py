import logging
import random

import pytest
from galois import Poly
from py_ecc.optimized_bn128 import G1, G2, Z2, add, multiply
from py_ecc.optimized_bn128 import optimized_curve as curve

from covenant_circuit import groth16
from covenant_circuit.backend import Groth16Backend
from covenant_circuit.errors import BackendError, CircuitError, ProofGenerationError
from covenant_circuit.field import FP
from covenant_circuit.r1cs import ConstraintSystem
from covenant_circuit.witness import evaluate


def test_qap_interpolates_the_matrices(cube):
    qap = groth16.build_qap(cube)
    L, R, O = cube.to_matrices()
    n = len(cube.constraints)
    assert qap.L.shape == (len(cube.signals), n)
    assert qap.num_public == 1
    assert qap.T.degree == n
    for i in range(1, n + 1):
        assert qap.T(FP(i)) == 0
    # each wire polynomial evaluates to its matrix column at x = 1..n
    for wire, poly in enumerate(groth16.to_poly(qap.L)):
        assert [int(poly(FP(j + 1))) for j in range(n)] == [int(v) for v in L[:, wire]]


def test_qap_requires_constraints():
    cs = ConstraintSystem("empty")
    cs.input("x")
    cs.freeze()
    with pytest.raises(ValueError):
        groth16.build_qap(cs)
    with pytest.raises(BackendError):
        Groth16Backend(cs).setup()


def test_evaluate_poly_pads_low_degree_polynomials():
    points = [multiply(G1, 3 ** i) for i in range(4)]
    poly = Poly([2, 1], field=FP)  # 2x + 1
    assert curve.eq(groth16.evaluate_poly(poly, points), multiply(G1, 7))
    assert curve.eq(groth16.evaluate_poly(Poly([0], field=FP), []), curve.Z1)
    g2_points = [multiply(G2, 5 ** i) for i in range(2)]
    assert curve.eq(groth16.evaluate_poly(Poly([1, 0], field=FP), g2_points, zero=Z2), multiply(G2, 5))
    with pytest.raises(ProofGenerationError):
        groth16.evaluate_poly(Poly([1, 0, 0, 0, 0], field=FP), points)


def test_keys_match_the_circuit(cube, cube_keys):
    pk, vk = cube_keys
    assert vk.num_public == 1
    assert len(pk.K_delta_G1) == len(cube.private_signals)
    assert len(pk.tau_G1) == len(cube.constraints)
    assert len(pk.target_G1) == len(cube.constraints) - 1


def test_prove_and_verify(cube_backend, cube_keys, cube_proof):
    _, vk = cube_keys
    assignment, proof = cube_proof
    assert assignment.public_inputs() == [35]
    assert cube_backend.verify(vk, [35], proof)
    assert cube_backend.verify(vk, ["35"], proof)


def test_wrong_public_input_is_rejected(cube_backend, cube_keys, cube_proof):
    _, vk = cube_keys
    _, proof = cube_proof
    assert not cube_backend.verify(vk, [36], proof)


def test_tampered_proof_is_rejected(cube_backend, cube_keys, cube_proof):
    _, vk = cube_keys
    _, proof = cube_proof
    tampered = groth16.Proof(proof.A, proof.B, add(proof.C, G1))
    assert not cube_backend.verify(vk, [35], tampered)


def test_public_input_count_is_checked(cube_backend, cube_keys, cube_proof):
    _, vk = cube_keys
    _, proof = cube_proof
    with pytest.raises(BackendError):
        cube_backend.verify(vk, [35, 1], proof)


def test_invalid_witness_cannot_be_proved(cube, cube_keys):
    pk, _ = cube_keys
    qap = groth16.build_qap(cube)
    w = evaluate(cube, {"x": 3}).vector()
    w[1] = w[1] + 1
    with pytest.raises(ProofGenerationError):
        groth16.prove(pk, w, qap, rng=random.Random(1))
    with pytest.raises(ProofGenerationError):
        groth16.prove(pk, w[:-1], qap)


def test_backend_refuses_foreign_assignments(cube_backend, cube_keys, cube):
    other = ConstraintSystem("cube")
    x = other.input("x")
    other.output("y", other.mul(x, x))
    other.freeze()
    with pytest.raises(ProofGenerationError):
        cube_backend.prove(cube_keys[0], evaluate(other, {"x": 2}))


def test_backend_requires_a_frozen_system():
    with pytest.raises(CircuitError):
        Groth16Backend(ConstraintSystem())


def test_backend_refuses_circuits_over_its_size_limit(cube, cube_keys):
    backend = Groth16Backend(cube, rng=random.Random(3), max_constraints=1)
    with pytest.raises(BackendError, match="too large for the reference backend"):
        backend.setup()
    with pytest.raises(BackendError, match="too large for the reference backend"):
        backend.prove(cube_keys[0], evaluate(cube, {"x": 3}))


def test_transfer_circuit_exceeds_the_reference_backend(small_circuit):
    with pytest.raises(BackendError, match="too large"):
        Groth16Backend(small_circuit.system).setup()


def _fq2_sqrt(a):
    # q = 3 (mod 4); alpha^q is the conjugate of alpha
    q = curve.field_modulus
    minus_one = -curve.FQ2.one()
    a1 = a ** ((q - 3) // 4)
    alpha = a1 * a1 * a
    if curve.FQ2([alpha.coeffs[0], -alpha.coeffs[1]]) * alpha == minus_one:
        return None
    x0 = a1 * a
    if alpha == minus_one:
        return curve.FQ2([0, 1]) * x0
    return (curve.FQ2.one() + alpha) ** ((q - 1) // 2) * x0


def _twist_point_outside_g2():
    for i in range(1, 100):
        x = curve.FQ2([i, 1])
        rhs = x ** 3 + curve.b2
        y = _fq2_sqrt(rhs)
        if y is not None:
            assert y * y == rhs
            return (x, y, curve.FQ2.one())
    raise AssertionError("no twist point found")


def test_g2_subgroup_membership():
    point = _twist_point_outside_g2()
    assert curve.is_on_curve(point, curve.b2)
    assert not groth16.in_g2_subgroup(point)
    assert groth16.in_g2_subgroup(G2)
    assert groth16.in_g2_subgroup(Z2)


def test_proof_with_b_outside_g2_is_rejected(cube_backend, cube_keys, cube_proof, caplog):
    _, vk = cube_keys
    _, proof = cube_proof
    forged = groth16.Proof(proof.A, _twist_point_outside_g2(), proof.C)
    with caplog.at_level(logging.DEBUG, logger="covenant_circuit.groth16"):
        assert not cube_backend.verify(vk, [35], forged)
    assert "subgroup" in caplog.text
