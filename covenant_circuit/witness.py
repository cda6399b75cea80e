"""Witness evaluation.

``evaluate`` turns caller-supplied input values into a full assignment of every
signal in a frozen constraint system, in allocation order, then checks every
constraint. Inputs are validated completely (names, shapes, field ranges)
before any wire is computed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import galois

from .errors import CircuitError, ShapeMismatch, UnsatisfiedConstraint
from .field import p, parse_field_value, to_decimal, to_field_vector
from .r1cs import Constraint, ConstraintSystem, Signal, Term, as_lc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    system: ConstraintSystem
    values: Tuple[int, ...]

    def __getitem__(self, signal: Signal) -> int:
        return self.values[signal.id]

    def value(self, term: Term) -> int:
        return as_lc(term).evaluate(self.values)

    def output(self, name: str) -> int:
        return self.values[self.system.outputs[name].id]

    def public_inputs(self) -> List[int]:
        return [self.values[signal.id] for signal in self.system.public_signals]

    def public_json(self) -> List[str]:
        return [to_decimal(v) for v in self.public_inputs()]

    def vector(self) -> galois.FieldArray:
        """The full witness in backend layout ``[1, public..., private...]``."""
        return to_field_vector(self.values[signal.id] for signal in self.system.layout())

    def __repr__(self) -> str:
        return f"Assignment({self.system.name!r}, {len(self.values)} values)"


def _check_shape(name: str, value: Any, shape: Tuple[int, ...]) -> None:
    is_array = isinstance(value, (list, tuple))
    if not shape:
        if is_array:
            raise ShapeMismatch(name, [], f"array of length {len(value)}")
        return
    if not is_array:
        raise ShapeMismatch(name, list(shape), "scalar")
    if len(value) != shape[0]:
        raise ShapeMismatch(name, list(shape), f"length {len(value)}")
    for i, item in enumerate(value):
        _check_shape(f"{name}[{i}]", item, shape[1:])


def _assign(name: str, value: Any, signals: Any, out: Dict[int, int]) -> None:
    if isinstance(signals, Signal):
        out[signals.id] = parse_field_value(value, name)
        return
    for i, (item, signal) in enumerate(zip(value, signals)):
        _assign(f"{name}[{i}]", item, signal, out)


def collect_inputs(cs: ConstraintSystem, inputs: Mapping[str, Any]) -> Dict[int, int]:
    if not isinstance(inputs, Mapping):
        raise ShapeMismatch("<inputs>", "mapping of input names", type(inputs).__name__)
    unknown = sorted(set(inputs) - set(cs.inputs))
    if unknown:
        raise ShapeMismatch(unknown[0], "no such input", "a value")
    for name, spec in cs.inputs.items():
        if name not in inputs:
            raise ShapeMismatch(name, list(spec.shape), "missing")
        _check_shape(name, inputs[name], spec.shape)
    provided: Dict[int, int] = {}
    for name, spec in cs.inputs.items():
        _assign(name, inputs[name], spec.signals, provided)
    return provided


def evaluate(cs: ConstraintSystem, inputs: Mapping[str, Any],
             on_violation: Optional[Callable[[Constraint], None]] = None) -> Assignment:
    """Compute every signal of ``cs`` from ``inputs`` and check all constraints.

    Raises ``ShapeMismatch`` or ``MalformedFieldValue`` for bad inputs and
    ``UnsatisfiedConstraint`` if the resulting assignment violates any
    constraint. ``on_violation`` is called once per violated constraint, for
    diagnostics only.
    """
    if not cs.frozen:
        raise CircuitError(f"constraint system '{cs.name}' must be frozen before witness evaluation")
    provided = collect_inputs(cs, inputs)

    values: List[int] = []

    def get(term: Term) -> int:
        return as_lc(term).evaluate(values)

    for step in cs.steps:
        if step.hint is None:
            values.append(provided[step.signal_ids[0]])
            continue
        result = step.hint(get)
        if len(step.signal_ids) == 1:
            values.append(int(result) % p)
            continue
        result = [int(v) % p for v in result]
        if len(result) != len(step.signal_ids):
            raise CircuitError(f"hint produced {len(result)} values for {len(step.signal_ids)} wires")
        values.extend(result)

    violated = [c for c in cs.constraints if not c.is_satisfied(values)]
    if violated:
        for constraint in violated:
            logger.debug("constraint violated: %s", constraint.label)
            if on_violation is not None:
                on_violation(constraint)
        raise UnsatisfiedConstraint([c.label for c in violated])
    return Assignment(cs, tuple(values))
