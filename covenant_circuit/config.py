"""Transfer circuit parameters.

Sources, in order of precedence:
    1. Environment variables (COVENANT_CIRCUIT_*)
    2. JSON parameter file
    3. Defaults below
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .gadgets import MAX_BIT_WIDTH

MAX_INPUTS = 10
MAX_OUTPUTS = 10
SCRIPT_LEN = 8
COUNT_BITS = 8
AMOUNT_BITS = 64
COMMITMENT_GROUP_SIZE = 8

ENV_PREFIX = "COVENANT_CIRCUIT_"


class ConfigError(Exception):
    """Invalid or unreadable configuration."""


@dataclass(frozen=True)
class TransferParams:
    max_inputs: int = MAX_INPUTS
    max_outputs: int = MAX_OUTPUTS
    script_len: int = SCRIPT_LEN
    count_bits: int = COUNT_BITS
    amount_bits: int = AMOUNT_BITS
    commitment_group_size: int = COMMITMENT_GROUP_SIZE

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{f.name} must be a positive integer, got {value!r}")
        # counts go up to max_inputs/max_outputs inclusive and are compared with LessThan
        if 1 << self.count_bits <= max(self.max_inputs, self.max_outputs):
            raise ConfigError(
                f"count_bits={self.count_bits} cannot represent slot counts up to "
                f"{max(self.max_inputs, self.max_outputs)}"
            )
        if self.count_bits > MAX_BIT_WIDTH:
            raise ConfigError(f"count_bits must not exceed {MAX_BIT_WIDTH}")
        # the balance sums must not wrap around the field
        if self.amount_bits + max(self.max_inputs, self.max_outputs).bit_length() > MAX_BIT_WIDTH:
            raise ConfigError(f"amount_bits={self.amount_bits} allows sums that overflow the field")

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TransferParams":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown parameter(s): {', '.join(unknown)}")
        return cls(**dict(data))


def _env_overrides(env: Mapping[str, str]) -> Dict[str, int]:
    overrides = {}
    for f in fields(TransferParams):
        key = ENV_PREFIX + f.name.upper()
        if key in env:
            try:
                overrides[f.name] = int(env[key])
            except ValueError:
                raise ConfigError(f"{key} must be an integer, got {env[key]!r}") from None
    return overrides


def load_params(path=None, env: Optional[Mapping[str, str]] = None) -> TransferParams:
    data: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as infile:
                data = json.load(infile)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"cannot read parameters from {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
    data.update(_env_overrides(os.environ if env is None else env))
    return TransferParams.from_dict(data)
