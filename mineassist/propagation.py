"""Single-pass constraint-propagation estimate for boards too large to enumerate."""

from typing import Dict, Sequence

from .constraints import Constraint
from .models import Coord
from .utils import clamp_probability


def propagate_probabilities(
    constraints: Sequence[Constraint],
    unknowns: Sequence[Coord],
    remaining_mines: int,
) -> Dict[Coord, float]:
    """
    Blend the global mine density with each constraint's local density.

    Every unknown starts at ``remaining_mines / len(unknowns)``. Constraints
    are then visited once, in order, and each cell they cover moves to the
    mean of its current estimate and ``mine_count / len(cells)``.

    The estimate is not normalized: a constraint's cells need not sum to its
    mine count, nor all cells to ``remaining_mines``.
    """
    if not unknowns:
        return {}

    base = max(0, remaining_mines) / len(unknowns)
    probabilities: Dict[Coord, float] = {cell: base for cell in unknowns}

    for constraint in constraints:
        if not constraint.cells:
            continue
        local = max(0, constraint.mine_count) / len(constraint.cells)
        for cell in sorted(constraint.cells):
            current = probabilities.get(cell, 0.0)
            probabilities[cell] = clamp_probability((current + local) / 2)

    return {cell: clamp_probability(probabilities[cell]) for cell in unknowns}
