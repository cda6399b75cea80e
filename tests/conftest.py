import pathlib
import sys

import pytest

_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from covenant_circuit.config import TransferParams  # noqa: E402
from covenant_circuit.signature import generate_keypair  # noqa: E402
from covenant_circuit.transfer import SpendMode, TransactionWitness, TransferCircuit, Utxo  # noqa: E402

COVENANT = (11, 22, 33, 44)
COMPANION = (7, 7, 7, 7)
RECIPIENT = (5, 6)


@pytest.fixture(scope="session")
def small_params() -> TransferParams:
    return TransferParams(max_inputs=4, max_outputs=4, script_len=4)


@pytest.fixture(scope="session")
def small_circuit(small_params) -> TransferCircuit:
    return TransferCircuit(small_params)


@pytest.fixture(scope="session")
def owner():
    return generate_keypair(secret=0xC0FFEE)


@pytest.fixture
def make_transfer(owner):
    """Build a transfer owned by ``owner`` where every slot carries ``COVENANT`` unless overridden."""

    def make(input_amounts=(100, 50), output_amounts=(80, 70), input_scripts=None, output_scripts=None,
             input_index=0, num_token_outputs=None, spend_mode=SpendMode.STANDARD, token_script=None):
        input_scripts = input_scripts or [COVENANT] * len(input_amounts)
        output_scripts = output_scripts or [COVENANT] * len(output_amounts)
        inputs = [
            Utxo(amount, script, owner.public, token_script=token_script)
            for amount, script in zip(input_amounts, input_scripts)
        ]
        outputs = [Utxo(amount, script, RECIPIENT) for amount, script in zip(output_amounts, output_scripts)]
        return TransactionWitness(inputs, outputs, input_index=input_index,
                                  num_token_outputs=num_token_outputs, spend_mode=spend_mode)

    return make


def _cube_system():
    from covenant_circuit.r1cs import ConstraintSystem

    cs = ConstraintSystem("cube")
    x = cs.input("x")
    x2 = cs.mul(x, x, label="square")
    x3 = cs.mul(x2, x, label="cube")
    cs.output("y", x3 + x + 5)
    return cs.freeze()


@pytest.fixture(scope="session")
def cube():
    """``y = x^3 + x + 5`` with private ``x``: small enough for the reference prover."""
    return _cube_system()


@pytest.fixture(scope="session")
def cube_backend(cube):
    import random

    from covenant_circuit.backend import Groth16Backend

    return Groth16Backend(cube, rng=random.Random(7))


@pytest.fixture(scope="session")
def cube_keys(cube_backend):
    return cube_backend.setup()


@pytest.fixture(scope="session")
def cube_proof(cube, cube_backend, cube_keys):
    from covenant_circuit.witness import evaluate

    assignment = evaluate(cube, {"x": 3})
    return assignment, cube_backend.prove(cube_keys[0], assignment)
