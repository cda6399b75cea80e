"""Validity circuit for a covenant-bound confidential token transfer.

A transfer spends up to ``max_inputs`` UTXOs and creates up to ``max_outputs``
new ones. Arrays always have full capacity; ``numInputs`` / ``numOutputs`` mark
how many leading slots are real, and padding slots must carry amount 0.

The circuit enforces, for every witness and with a fixed constraint count:

* balance: the input amounts sum to the output amounts;
* covenant: the first ``numTokenOuts`` outputs carry the script of the spent
  input (``inputIndex``);
* hook: in hook-spend mode some active input carries the spent token's
  companion script;
* binding: the outputs are committed with a chunked MiMC hash and the signing
  message ``H(spentAmount, covenant, commitment)`` is published together with
  the spent input's owner key, so the signature can be checked against them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .config import TransferParams
from .errors import ShapeMismatch, UnsatisfiedConstraint
from .gadgets import (
    any_of,
    array_equal,
    less_than,
    range_check,
    select_with,
    selector,
    sum_of,
)
from .mimc import commit_chunks, commit_chunks_circuit, mimc_hash, mimc_hash_circuit
from .r1cs import ConstraintSystem, as_lc
from .signature import PublicKey, Signature, sign, verify
from .witness import Assignment, evaluate

logger = logging.getLogger(__name__)

PUBLIC_OUTPUTS = ("covenantDigest", "outputCommitment", "message", "spentOwnerKeyX", "spentOwnerKeyY")


class SpendMode(IntEnum):
    STANDARD = 0
    HOOK = 1


@dataclass(frozen=True)
class Utxo:
    """One input or output slot.

    ``token_script`` is the companion script a hook spend of this input must be
    accompanied by; it defaults to all zeros.
    """

    amount: int
    script: Tuple[int, ...]
    owner_key: Tuple[int, int] = (0, 0)
    token_script: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, "script", tuple(self.script))
        object.__setattr__(self, "owner_key", tuple(self.owner_key))
        if self.token_script is not None:
            object.__setattr__(self, "token_script", tuple(self.token_script))

    def __repr__(self) -> str:
        return "Utxo(<private>)"


def _pad(values: List[Any], length: int, fill: Any, name: str) -> List[Any]:
    if len(values) > length:
        raise ShapeMismatch(name, [length], f"{len(values)} entries")
    return values + [fill] * (length - len(values))


def _flatten_outputs(amounts, scripts, keys_x, keys_y) -> List[Any]:
    flat: List[Any] = []
    for amount, script, key_x, key_y in zip(amounts, scripts, keys_x, keys_y):
        flat.append(amount)
        flat.extend(script)
        flat.append(key_x)
        flat.append(key_y)
    return flat


def decimal_strings(value: Any) -> Any:
    """Render circuit inputs in the decimal-string JSON form."""
    if isinstance(value, (list, tuple)):
        return [decimal_strings(v) for v in value]
    return str(int(value))


@dataclass(repr=False)
class TransactionWitness:
    """Private description of one transfer.

    It is built by the wallet, fed once to the evaluator and then dropped; it
    holds amounts, scripts and keys, so it has no persistence method and its
    repr shows only slot counts.
    """

    inputs: List[Utxo]
    outputs: List[Utxo]
    input_index: int = 0
    num_token_outputs: Optional[int] = None
    spend_mode: SpendMode = SpendMode.STANDARD

    def __repr__(self) -> str:
        return f"TransactionWitness({len(self.inputs)} inputs, {len(self.outputs)} outputs)"

    def _check_script(self, script, params: TransferParams, name: str) -> List[int]:
        if len(script) != params.script_len:
            raise ShapeMismatch(name, [params.script_len], f"length {len(script)}")
        return list(script)

    def to_circuit_inputs(self, params: TransferParams) -> Dict[str, Any]:
        """Zero-pad every array to capacity and name it after its circuit input."""
        zero_script = [0] * params.script_len
        n, m = params.max_inputs, params.max_outputs
        in_scripts = [self._check_script(u.script, params, f"inputScripts[{i}]") for i, u in enumerate(self.inputs)]
        in_token_scripts = [
            self._check_script(zero_script if u.token_script is None else u.token_script, params,
                               f"inputTokenScripts[{i}]")
            for i, u in enumerate(self.inputs)
        ]
        out_scripts = [self._check_script(u.script, params, f"outputScripts[{i}]") for i, u in enumerate(self.outputs)]
        num_token_outputs = len(self.outputs) if self.num_token_outputs is None else self.num_token_outputs
        return {
            "inputAmounts": _pad([u.amount for u in self.inputs], n, 0, "inputAmounts"),
            "inputScripts": _pad(in_scripts, n, zero_script, "inputScripts"),
            "inputTokenScripts": _pad(in_token_scripts, n, zero_script, "inputTokenScripts"),
            "inputOwnerKeysX": _pad([u.owner_key[0] for u in self.inputs], n, 0, "inputOwnerKeysX"),
            "inputOwnerKeysY": _pad([u.owner_key[1] for u in self.inputs], n, 0, "inputOwnerKeysY"),
            "numInputs": len(self.inputs),
            "inputIndex": self.input_index,
            "outputAmounts": _pad([u.amount for u in self.outputs], m, 0, "outputAmounts"),
            "outputScripts": _pad(out_scripts, m, zero_script, "outputScripts"),
            "outputOwnerKeysX": _pad([u.owner_key[0] for u in self.outputs], m, 0, "outputOwnerKeysX"),
            "outputOwnerKeysY": _pad([u.owner_key[1] for u in self.outputs], m, 0, "outputOwnerKeysY"),
            "numOutputs": len(self.outputs),
            "numTokenOuts": num_token_outputs,
            "spendMode": int(self.spend_mode),
        }

    def public_outputs(self, params: TransferParams) -> Dict[str, int]:
        """The circuit's public outputs, computed natively."""
        inputs = self.to_circuit_inputs(params)
        if not 0 <= self.input_index < len(self.inputs):
            raise IndexError(f"input index {self.input_index} does not name an input")
        covenant = inputs["inputScripts"][self.input_index]
        flat = _flatten_outputs(
            inputs["outputAmounts"], inputs["outputScripts"], inputs["outputOwnerKeysX"], inputs["outputOwnerKeysY"]
        )
        commitment = commit_chunks(flat, params.commitment_group_size)
        return {
            "covenantDigest": mimc_hash(covenant),
            "outputCommitment": commitment,
            "message": mimc_hash([inputs["inputAmounts"][self.input_index], *covenant, commitment]),
            "spentOwnerKeyX": inputs["inputOwnerKeysX"][self.input_index],
            "spentOwnerKeyY": inputs["inputOwnerKeysY"][self.input_index],
        }

    def signing_message(self, params: TransferParams) -> int:
        return self.public_outputs(params)["message"]

    def sign(self, secret: int, params: TransferParams) -> Signature:
        return sign(secret, self.signing_message(params))


def build_transfer_circuit(params: Optional[TransferParams] = None) -> ConstraintSystem:
    params = params or TransferParams()
    n, m, script_len = params.max_inputs, params.max_outputs, params.script_len
    bits = params.count_bits
    cs = ConstraintSystem("covenant_transfer")

    input_amounts = cs.input_array("inputAmounts", n)
    input_scripts = cs.input_array("inputScripts", (n, script_len))
    input_token_scripts = cs.input_array("inputTokenScripts", (n, script_len))
    input_keys_x = cs.input_array("inputOwnerKeysX", n)
    input_keys_y = cs.input_array("inputOwnerKeysY", n)
    num_inputs = cs.input("numInputs")
    input_index = cs.input("inputIndex")
    output_amounts = cs.input_array("outputAmounts", m)
    output_scripts = cs.input_array("outputScripts", (m, script_len))
    output_keys_x = cs.input_array("outputOwnerKeysX", m)
    output_keys_y = cs.input_array("outputOwnerKeysY", m)
    num_outputs = cs.input("numOutputs")
    num_token_outs = cs.input("numTokenOuts")
    spend_mode = cs.input("spendMode")

    with cs.scope("counts"):
        # LessThan needs its operands range-checked first
        for count in (num_inputs, input_index, num_outputs, num_token_outs):
            range_check(cs, count, bits, label=count.name)
        cs.assert_equal(less_than(cs, 0, num_inputs, bits), 1, label="numInputs >= 1")
        cs.assert_equal(less_than(cs, num_inputs, n + 1, bits), 1, label="numInputs <= capacity")
        cs.assert_equal(less_than(cs, num_outputs, m + 1, bits), 1, label="numOutputs <= capacity")
        cs.assert_equal(less_than(cs, num_token_outs, as_lc(num_outputs) + 1, bits), 1,
                        label="numTokenOuts <= numOutputs")
        cs.assert_equal(less_than(cs, input_index, num_inputs, bits), 1, label="inputIndex < numInputs")
        cs.assert_bool(spend_mode, label="spendMode")

    with cs.scope("padding"):
        active_inputs = [less_than(cs, i, num_inputs, bits, label=f"input {i} active") for i in range(n)]
        active_outputs = [less_than(cs, i, num_outputs, bits, label=f"output {i} active") for i in range(m)]
        for i, (active, amount) in enumerate(zip(active_inputs, input_amounts)):
            cs.constrain(1 - as_lc(active), amount, 0, label=f"input {i} unused")
        for i, (active, amount) in enumerate(zip(active_outputs, output_amounts)):
            cs.constrain(1 - as_lc(active), amount, 0, label=f"output {i} unused")
        for amount in input_amounts + output_amounts:
            range_check(cs, amount, params.amount_bits, label=f"{amount.name} range")

    with cs.scope("balance"):
        cs.assert_equal(sum_of(cs, input_amounts), sum_of(cs, output_amounts), label="inputs == outputs")

    with cs.scope("covenant"):
        spent = selector(cs, input_index, n, strict=True, label="inputIndex")
        covenant = select_with(cs, input_scripts, spent, label="covenant")
        for i in range(m):
            token_output = less_than(cs, i, num_token_outs, bits, label=f"output {i} is token")
            same_script = array_equal(cs, output_scripts[i], covenant, label=f"output {i} script")
            cs.constrain(token_output, 1 - as_lc(same_script), 0, label=f"output {i} keeps covenant")

    with cs.scope("hook"):
        target = select_with(cs, input_token_scripts, spent, label="companion")
        matches = [
            cs.mul(active_inputs[i], array_equal(cs, input_scripts[i], target, label=f"input {i} script"),
                   label=f"input {i} matches")
            for i in range(n)
        ]
        found = any_of(cs, matches, label="companion found")
        cs.constrain(spend_mode, 1 - as_lc(found), 0, label="hook spend has companion")

    with cs.scope("commitment"):
        flat = _flatten_outputs(output_amounts, output_scripts, output_keys_x, output_keys_y)
        commitment = commit_chunks_circuit(cs, flat, params.commitment_group_size)
        spent_amount = select_with(cs, input_amounts, spent, label="spent amount")
        message = mimc_hash_circuit(cs, [spent_amount, *covenant, commitment])
        covenant_digest = mimc_hash_circuit(cs, covenant)
        owner_x = select_with(cs, input_keys_x, spent, label="owner")
        owner_y = select_with(cs, input_keys_y, spent, label="owner")

    cs.output("covenantDigest", covenant_digest)
    cs.output("outputCommitment", commitment)
    cs.output("message", message)
    cs.output("spentOwnerKeyX", owner_x)
    cs.output("spentOwnerKeyY", owner_y)
    return cs.freeze()


def split_signature(document: Mapping[str, Any]) -> Tuple[Dict[str, Any], Optional[Signature]]:
    """Separate an optional ``signature`` object from the circuit inputs of a witness file."""
    inputs = dict(document)
    raw = inputs.pop("signature", None)
    return inputs, None if raw is None else Signature.from_dict(raw)


def spent_owner_key(assignment: Assignment) -> PublicKey:
    return assignment.output("spentOwnerKeyX"), assignment.output("spentOwnerKeyY")


def authorize(assignment: Assignment, signature: Signature,
              verifier: Callable[[PublicKey, int, Signature], bool] = verify) -> bool:
    return verifier(spent_owner_key(assignment), assignment.output("message"), signature)


class TransferCircuit:
    """The compiled transfer circuit plus the checks that surround it."""

    def __init__(self, params: Optional[TransferParams] = None):
        self.params = params or TransferParams()
        self.system = build_transfer_circuit(self.params)

    @property
    def public_names(self) -> List[str]:
        return [signal.name for signal in self.system.public_signals]

    def inputs_of(self, witness) -> Mapping[str, Any]:
        if isinstance(witness, TransactionWitness):
            return witness.to_circuit_inputs(self.params)
        return witness

    def evaluate(self, witness, on_violation=None) -> Assignment:
        return evaluate(self.system, self.inputs_of(witness), on_violation=on_violation)

    def check(self, witness, signature: Optional[Signature],
              verifier: Callable[[PublicKey, int, Signature], bool] = verify) -> Assignment:
        """Evaluate the witness and check the authorization signature.

        Any failure, including a missing or invalid signature, is reported as
        ``UnsatisfiedConstraint``.
        """
        assignment = self.evaluate(witness)
        if signature is None or not authorize(assignment, signature, verifier):
            logger.debug("authorization signature rejected")
            raise UnsatisfiedConstraint(["authorization"])
        return assignment
