"""Arithmetic circuit for covenant-bound confidential token transfers."""

__version__ = "0.1.0"

from .config import ConfigError, TransferParams, load_params
from .errors import (
    BackendError,
    CircuitError,
    CircuitFrozen,
    KeyLoadError,
    MalformedFieldValue,
    ProofGenerationError,
    ShapeMismatch,
    UnsatisfiedConstraint,
)
from .r1cs import ConstraintSystem, LinearCombination, Signal, Visibility
from .transfer import SpendMode, TransactionWitness, TransferCircuit, Utxo, build_transfer_circuit
from .witness import Assignment, evaluate

__all__ = [
    "Assignment",
    "BackendError",
    "CircuitError",
    "CircuitFrozen",
    "ConfigError",
    "ConstraintSystem",
    "KeyLoadError",
    "LinearCombination",
    "MalformedFieldValue",
    "ProofGenerationError",
    "ShapeMismatch",
    "Signal",
    "SpendMode",
    "TransactionWitness",
    "TransferCircuit",
    "TransferParams",
    "UnsatisfiedConstraint",
    "Utxo",
    "Visibility",
    "build_transfer_circuit",
    "evaluate",
    "load_params",
]
