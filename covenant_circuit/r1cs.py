"""Rank-1 constraint system builder.

Every value in a circuit is a linear combination of the entries of the witness
vector, stored sparsely as ``{signal_id: coefficient}``; for example
``x = w0 + 5*w2 + 7*w3`` is ``{0: 1, 2: 5, 3: 7}``. Wire 0 is the constant 1, so
constants are combinations over wire 0 only.

Additions and scaling by constants are free. Only ``mul`` (and the gadgets built
on it) allocate new wires and emit ``a * b = c`` constraints. Each new wire is
registered together with a hint that computes its value from wires allocated
before it, so allocation order is a valid evaluation order by construction.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import galois

from .errors import CircuitError, CircuitFrozen
from .field import FP, p

logger = logging.getLogger(__name__)

ONE_ID = 0


class Visibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class SignalKind(Enum):
    ONE = "one"
    INPUT = "input"
    INTERNAL = "internal"
    OUTPUT = "output"


class _Arithmetic:
    __slots__ = ()

    def _lc(self) -> "LinearCombination":
        raise NotImplementedError

    def __add__(self, other):
        return self._lc()._combine(as_lc(other), 1)

    def __radd__(self, other):
        return as_lc(other)._combine(self._lc(), 1)

    def __sub__(self, other):
        return self._lc()._combine(as_lc(other), -1)

    def __rsub__(self, other):
        return as_lc(other)._combine(self._lc(), -1)

    def __neg__(self):
        return self._lc().scale(-1)

    def __mul__(self, other):
        # products of two wires need a constraint, see ConstraintSystem.mul
        if isinstance(other, int) and not isinstance(other, bool):
            return self._lc().scale(other)
        return NotImplemented

    __rmul__ = __mul__


@dataclass(frozen=True)
class Signal(_Arithmetic):
    id: int
    name: str
    kind: SignalKind
    visibility: Visibility

    def _lc(self) -> "LinearCombination":
        return LinearCombination({self.id: 1})


class LinearCombination(_Arithmetic):
    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Dict[int, int]] = None):
        self.terms: Dict[int, int] = {}
        for key, coeff in (terms or {}).items():
            coeff %= p
            if coeff:
                self.terms[key] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE_ID: value})

    def _lc(self) -> "LinearCombination":
        return self

    def _combine(self, other: "LinearCombination", sign: int) -> "LinearCombination":
        terms = dict(self.terms)
        for key, coeff in other.terms.items():
            terms[key] = terms.get(key, 0) + sign * coeff
        return LinearCombination(terms)

    def scale(self, k: int) -> "LinearCombination":
        return LinearCombination({key: coeff * k for key, coeff in self.terms.items()})

    def constant_value(self) -> Optional[int]:
        """The value of the combination if it only involves the constant wire."""
        if self.terms.keys() <= {ONE_ID}:
            return self.terms.get(ONE_ID, 0)
        return None

    def evaluate(self, values: Sequence[int]) -> int:
        return sum(values[key] * coeff for key, coeff in self.terms.items()) % p

    def __repr__(self) -> str:
        body = " + ".join(f"{coeff}*w{key}" for key, coeff in sorted(self.terms.items()))
        return f"LinearCombination({body or '0'})"


Term = Union[int, Signal, LinearCombination]
Getter = Callable[[Term], int]
Hint = Callable[[Getter], Any]


def as_lc(term: Term) -> LinearCombination:
    if isinstance(term, _Arithmetic):
        return term._lc()
    if isinstance(term, int) and not isinstance(term, bool):
        return LinearCombination.constant(term)
    raise TypeError(f"cannot use {type(term).__name__} as a circuit value")


@dataclass(frozen=True)
class Constraint:
    """``a * b = c`` over linear combinations."""

    a: LinearCombination
    b: LinearCombination
    c: LinearCombination
    label: str

    def is_satisfied(self, values: Sequence[int]) -> bool:
        return self.a.evaluate(values) * self.b.evaluate(values) % p == self.c.evaluate(values)


@dataclass(frozen=True)
class InputSpec:
    name: str
    shape: Tuple[int, ...]
    visibility: Visibility
    signals: Any  # a Signal, or nested lists of Signals following ``shape``


@dataclass(frozen=True)
class Step:
    """Evaluation step: the wires it defines and how. ``hint`` is None for inputs."""

    signal_ids: Tuple[int, ...]
    hint: Optional[Hint]


class ConstraintSystem:
    def __init__(self, name: str = "circuit"):
        self.name = name
        self.signals: List[Signal] = []
        self.constraints: List[Constraint] = []
        self.inputs: Dict[str, InputSpec] = {}
        self.outputs: Dict[str, Signal] = {}
        self.steps: List[Step] = []
        self.frozen = False
        self._scopes: List[str] = []
        self.one = self._new_signal("one", SignalKind.ONE, Visibility.PUBLIC)
        self.steps.append(Step((self.one.id,), lambda get: 1))

    # allocation

    def _check_mutable(self) -> None:
        if self.frozen:
            raise CircuitFrozen(f"constraint system '{self.name}' is frozen")

    def _new_signal(self, name: str, kind: SignalKind, visibility: Visibility) -> Signal:
        self._check_mutable()
        signal = Signal(len(self.signals), name, kind, visibility)
        self.signals.append(signal)
        return signal

    def input(self, name: str, visibility: Visibility = Visibility.PRIVATE) -> Signal:
        return self.input_array(name, (), visibility)

    def input_array(self, name: str, shape, visibility: Visibility = Visibility.PRIVATE):
        """Declare an input of fixed shape, e.g. ``(10,)`` or ``(10, 8)``."""
        self._check_mutable()
        if name in self.inputs:
            raise CircuitError(f"input '{name}' is already declared")
        shape = (shape,) if isinstance(shape, int) else tuple(shape)

        def build(prefix: str, dims: Tuple[int, ...]):
            if not dims:
                signal = self._new_signal(prefix, SignalKind.INPUT, visibility)
                self.steps.append(Step((signal.id,), None))
                return signal
            return [build(f"{prefix}[{i}]", dims[1:]) for i in range(dims[0])]

        signals = build(name, shape)
        self.inputs[name] = InputSpec(name, shape, visibility, signals)
        return signals

    def witness(self, hint: Hint, name: Optional[str] = None) -> Signal:
        """Allocate an internal wire whose value is ``hint(get)``. It is unconstrained."""
        signal = self._new_signal(name or f"w{len(self.signals)}", SignalKind.INTERNAL, Visibility.PRIVATE)
        self.steps.append(Step((signal.id,), hint))
        return signal

    def witness_array(self, hint: Hint, n: int, name: Optional[str] = None) -> List[Signal]:
        """Allocate ``n`` internal wires defined together by one hint returning ``n`` values."""
        base = name or f"w{len(self.signals)}"
        signals = [
            self._new_signal(f"{base}[{i}]", SignalKind.INTERNAL, Visibility.PRIVATE) for i in range(n)
        ]
        self.steps.append(Step(tuple(s.id for s in signals), hint))
        return signals

    def output(self, name: str, expr: Term) -> Signal:
        """Expose ``expr`` as a public output wire."""
        if name in self.outputs:
            raise CircuitError(f"output '{name}' is already declared")
        expr = as_lc(expr)
        signal = self._new_signal(name, SignalKind.OUTPUT, Visibility.PUBLIC)
        self.steps.append(Step((signal.id,), lambda get: get(expr)))
        self.assert_equal(signal, expr, label=f"output {name}")
        self.outputs[name] = signal
        return signal

    # constraints

    def mul(self, a: Term, b: Term, label: str = "mul") -> Term:
        a, b = as_lc(a), as_lc(b)
        ka, kb = a.constant_value(), b.constant_value()
        if ka is not None:
            return b.scale(ka)
        if kb is not None:
            return a.scale(kb)
        out = self.witness(lambda get: get(a) * get(b) % p)
        self.constrain(a, b, out, label=label)
        return out

    def constrain(self, a: Term, b: Term, c: Term, label: str = "constraint") -> None:
        self._check_mutable()
        a, b, c = as_lc(a), as_lc(b), as_lc(c)
        ka, kb = a.constant_value(), b.constant_value()
        if ka is not None or kb is not None:
            # one side is constant, so the product is linear: fold it into c
            c = c - (b.scale(ka) if ka is not None else a.scale(kb))
            kc = c.constant_value()
            if kc is not None:
                if kc != 0:
                    raise CircuitError(f"constraint '{self._label(label)}' cannot be satisfied by any witness")
                return
            a, b, c = c, LinearCombination.constant(1), LinearCombination()
        self.constraints.append(Constraint(a, b, c, self._label(label)))

    def assert_equal(self, x: Term, y: Term, label: str = "equal") -> None:
        self.constrain(as_lc(x) - y, 1, 0, label=label)

    def assert_zero(self, x: Term, label: str = "zero") -> None:
        self.constrain(x, 1, 0, label=label)

    def assert_bool(self, x: Term, label: str = "bool") -> None:
        self.constrain(x, x, x, label=label)

    @contextmanager
    def scope(self, label: str) -> Iterator["ConstraintSystem"]:
        self._scopes.append(label)
        try:
            yield self
        finally:
            self._scopes.pop()

    def _label(self, label: str) -> str:
        return "/".join(self._scopes + [label])

    # compiled view

    def freeze(self) -> "ConstraintSystem":
        self.frozen = True
        logger.info(
            "compiled %s: %d constraints, %d signals (%d public)",
            self.name, len(self.constraints), len(self.signals), len(self.public_signals),
        )
        return self

    @property
    def public_signals(self) -> List[Signal]:
        """Public-input vector order. Part of the proof protocol, stable across builds."""
        return [s for s in self.signals if s.visibility is Visibility.PUBLIC and s.kind is not SignalKind.ONE]

    @property
    def private_signals(self) -> List[Signal]:
        return [s for s in self.signals if s.visibility is Visibility.PRIVATE]

    def layout(self) -> List[Signal]:
        """Witness column order used by the proving backend: ``[one, public..., private...]``."""
        return [self.one] + self.public_signals + self.private_signals

    def stats(self) -> Dict[str, int]:
        return {
            "constraints": len(self.constraints),
            "signals": len(self.signals),
            "public": len(self.public_signals),
            "private": len(self.private_signals),
        }

    def to_matrices(self) -> Tuple[galois.FieldArray, galois.FieldArray, galois.FieldArray]:
        """Dense ``L, R, O`` matrices, one row per constraint, columns in ``layout()`` order."""
        columns = {signal.id: col for col, signal in enumerate(self.layout())}
        width = len(self.signals)
        matrices = []
        for part in ("a", "b", "c"):
            rows = []
            for constraint in self.constraints:
                row = [0] * width
                for key, coeff in getattr(constraint, part).terms.items():
                    row[columns[key]] = coeff
                rows.append(row)
            matrices.append(FP(rows))
        return matrices[0], matrices[1], matrices[2]

    def to_json(self) -> Dict[str, Any]:
        layout = self.layout()
        columns = {signal.id: col for col, signal in enumerate(layout)}

        def sparse(lc: LinearCombination) -> Dict[str, str]:
            return {str(columns[key]): str(coeff) for key, coeff in sorted(lc.terms.items())}

        return {
            "name": self.name,
            "prime": str(p),
            "nVars": len(layout),
            "nPublic": len(self.public_signals),
            "nConstraints": len(self.constraints),
            "signals": [signal.name for signal in layout],
            "constraints": [[sparse(c.a), sparse(c.b), sparse(c.c)] for c in self.constraints],
            "labels": [c.label for c in self.constraints],
        }
