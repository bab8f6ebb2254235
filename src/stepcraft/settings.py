from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Tuple


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


MAX_MATRIX_DIMENSIONS = _env_int("STEPCRAFT_MAX_MATRIX_DIMENSIONS", 5)
MAX_MATRIX_COMBINATIONS = _env_int("STEPCRAFT_MAX_MATRIX_COMBINATIONS", 100)
WARN_MATRIX_COMBINATIONS = _env_int("STEPCRAFT_WARN_MATRIX_COMBINATIONS", 50)
SAMPLE_LIMIT = _env_int("STEPCRAFT_SAMPLE_LIMIT", 10)
LARGE_PIPELINE_STEPS = _env_int("STEPCRAFT_LARGE_PIPELINE_STEPS", 50)
MAX_TIMEOUT_MINUTES = _env_int("STEPCRAFT_MAX_TIMEOUT_MINUTES", 1440)
DANGEROUS_COMMANDS = _env_list(
    "STEPCRAFT_DANGEROUS_COMMANDS",
    ("rm -rf /", "dd if=/dev/zero", "chmod -R 777"),
)


@dataclass(frozen=True)
class ValidatorSettings:
    """Limits and denylists used by the validator passes."""
    max_matrix_dimensions: int = MAX_MATRIX_DIMENSIONS
    max_matrix_combinations: int = MAX_MATRIX_COMBINATIONS
    warn_matrix_combinations: int = WARN_MATRIX_COMBINATIONS
    sample_limit: int = SAMPLE_LIMIT
    large_pipeline_steps: int = LARGE_PIPELINE_STEPS
    max_timeout_minutes: int = MAX_TIMEOUT_MINUTES
    dangerous_commands: Tuple[str, ...] = field(default=DANGEROUS_COMMANDS)
