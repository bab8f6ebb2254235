# matrix.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .model import Matrix
from .settings import SAMPLE_LIMIT


@dataclass(frozen=True)
class MatrixExpansion:
    """Size and preview of a step's matrix."""
    dimension_count: int
    total_combinations: int
    sample_combinations: List[Dict[str, str]] = field(default_factory=list)
    empty_dimensions: List[str] = field(default_factory=list)
    unknown_adjustment_dimensions: List[str] = field(default_factory=list)
    adjustment_count: int = 0

    @property
    def remaining(self) -> int:
        return max(self.total_combinations - len(self.sample_combinations), 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension_count": self.dimension_count,
            "total_combinations": self.total_combinations,
            "sample_combinations": [dict(c) for c in self.sample_combinations],
            "empty_dimensions": list(self.empty_dimensions),
            "adjustment_count": self.adjustment_count,
        }


def _clean_values(values) -> List[str]:
    return [v.strip() for v in values if v.strip()]


def expand_matrix(matrix: Matrix | Dict[str, Any], sample_limit: int = SAMPLE_LIMIT) -> MatrixExpansion:
    """
    Count the Cartesian product of a matrix and enumerate a deterministic
    preview of at most `sample_limit` combinations.

    Blank values are dropped before counting. A dimension left with no
    values is reported in `empty_dimensions`, zeroes the product and
    suppresses the samples.
    The first dimension varies slowest in the samples.
    """
    if not isinstance(matrix, Matrix):
        matrix = Matrix.from_value(matrix)

    dimensions: List[Tuple[str, List[str]]] = [
        (name, _clean_values(values)) for name, values in matrix.setup.items()
    ]
    empty = [name for name, values in dimensions if not values]

    total = 1 if dimensions else 0
    for _name, values in dimensions:
        total *= len(values)

    samples: List[Dict[str, str]] = []
    if dimensions and not empty and sample_limit > 0:
        _generate(dimensions, 0, {}, samples, sample_limit)

    known = set(matrix.setup)
    unknown: List[str] = []
    for adj in matrix.adjustments:
        for dim in adj.with_:
            if dim not in known and dim not in unknown:
                unknown.append(dim)

    return MatrixExpansion(
        dimension_count=len(dimensions),
        total_combinations=total,
        sample_combinations=samples,
        empty_dimensions=empty,
        unknown_adjustment_dimensions=unknown,
        adjustment_count=len(matrix.adjustments),
    )


def _generate(
    dimensions: List[Tuple[str, List[str]]],
    index: int,
    current: Dict[str, str],
    out: List[Dict[str, str]],
    limit: int,
) -> None:
    if len(out) >= limit:
        return
    if index == len(dimensions):
        out.append(dict(current))
        return
    name, values = dimensions[index]
    for value in values:
        current[name] = value
        _generate(dimensions, index + 1, current, out, limit)
        if len(out) >= limit:
            break
    current.pop(name, None)
