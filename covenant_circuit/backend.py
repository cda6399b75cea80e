"""Boundary between a compiled circuit and a proving system.

Anything implementing ``ProvingBackend`` can prove a transfer; the in-repo
``Groth16Backend`` is the reference implementation. Keys are created once and
passed explicitly to ``prove`` and ``verify``.
"""

from __future__ import annotations

import logging
import random
from typing import Optional, Protocol, Sequence, Tuple

from .errors import BackendError, CircuitError, ProofGenerationError
from .field import parse_field_value
from .groth16 import QAP, Proof, ProverKey, VerifierKey, build_qap, keygen, prove, verifier
from .r1cs import ConstraintSystem
from .witness import Assignment

logger = logging.getLogger(__name__)

# dense Lagrange interpolation over every column stops being practical past this
MAX_CONSTRAINTS = 1024


class ProvingBackend(Protocol):
    def setup(self) -> Tuple[ProverKey, VerifierKey]:
        ...

    def prove(self, pk: ProverKey, assignment: Assignment) -> Proof:
        ...

    def verify(self, vk: VerifierKey, public_inputs: Sequence, proof: Proof) -> bool:
        ...


class Groth16Backend:
    """Groth16 on BN254 with dense R1CS matrices, for small circuits."""

    def __init__(self, cs: ConstraintSystem, rng: Optional[random.Random] = None,
                 max_constraints: int = MAX_CONSTRAINTS):
        if not cs.frozen:
            raise CircuitError(f"constraint system '{cs.name}' must be frozen before proving")
        self.system = cs
        self.rng = rng
        self.max_constraints = max_constraints
        self._qap: Optional[QAP] = None

    @property
    def qap(self) -> QAP:
        if self._qap is None:
            size = len(self.system.constraints)
            if size > self.max_constraints:
                raise BackendError(
                    f"circuit too large for the reference backend: {size} constraints, "
                    f"limit {self.max_constraints}"
                )
            try:
                self._qap = build_qap(self.system)
            except ValueError as exc:
                raise BackendError(str(exc)) from exc
        return self._qap

    def setup(self) -> Tuple[ProverKey, VerifierKey]:
        logger.info("running setup for %s", self.system.name)
        return keygen(self.qap, rng=self.rng)

    def prove(self, pk: ProverKey, assignment: Assignment) -> Proof:
        if assignment.system is not self.system:
            raise ProofGenerationError("assignment belongs to a different constraint system")
        qap = self.qap
        if len(pk.K_delta_G1) != len(self.system.private_signals):
            raise ProofGenerationError("proving key does not match the constraint system")
        proof = prove(pk, assignment.vector(), qap, rng=self.rng)
        logger.info("generated proof for %s", self.system.name)
        return proof

    def verify(self, vk: VerifierKey, public_inputs: Sequence, proof: Proof) -> bool:
        """``public_inputs`` is the circuit's public vector, without the constant wire."""
        if len(public_inputs) != vk.num_public:
            raise BackendError(f"expected {vk.num_public} public inputs, got {len(public_inputs)}")
        values = [parse_field_value(v, f"public[{i}]") for i, v in enumerate(public_inputs)]
        ok = verifier(vk, [1] + values, proof)
        logger.info("proof %s", "verified" if ok else "rejected")
        return ok
