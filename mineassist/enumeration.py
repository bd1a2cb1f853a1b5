"""Exact marginal mine probabilities by enumerating consistent mine layouts."""

import itertools
import logging
from collections import defaultdict
from math import comb
from typing import DefaultDict, Dict, List, Optional, Sequence, Set

from .constraints import Constraint
from .models import Coord
from .utils import Deadline

logger = logging.getLogger(__name__)


class _SearchState:
    """Mutable tallies for one enumeration run."""

    def __init__(self, remaining_mines: int, interior_count: int) -> None:
        self.remaining_mines = remaining_mines
        self.interior_count = interior_count
        self.assignment: Dict[Coord, bool] = {}
        # Weighted counts: every frontier layout stands for comb(Y, R - m)
        # full layouts once the Y interior cells receive the leftover mines.
        self.total_weight: int = 0
        self.mine_weight: DefaultDict[Coord, int] = defaultdict(int)
        self.interior_mine_weight: int = 0
        self.frontier_layouts: int = 0
        self.nodes: int = 0


def enumerate_probabilities(
    constraints: Sequence[Constraint],
    unknowns: Sequence[Coord],
    remaining_mines: int,
    deadline: Optional[Deadline] = None,
    check_interval: int = 1024,
) -> Optional[Dict[Coord, float]]:
    """
    Compute true marginal mine probabilities for every unknown cell.

    The result is identical to trying all ``2 ** len(unknowns)`` mine/no-mine
    assignments and keeping those whose total equals ``remaining_mines`` and
    which satisfy every constraint exactly. The search only branches over
    cells that appear in a constraint and abandons a branch as soon as a
    constraint or the global mine budget is violated; unconstrained cells are
    counted with binomial coefficients instead of being enumerated.

    Args:
        constraints: Local constraints from the extractor.
        unknowns: Hidden, unflagged cells (keys of the result, in order).
        remaining_mines: Mines not accounted for by flags.
        deadline: Polled every ``check_interval`` search nodes.
        check_interval: Number of search nodes between deadline checks.

    Returns:
        Mapping cell -> probability, or None when no assignment is
        consistent with the constraints and the mine total.

    Raises:
        CalculationTimeout: If the deadline passes mid-search.
    """
    if not unknowns:
        return {}
    if remaining_mines < 0 or remaining_mines > len(unknowns):
        logger.debug(
            "No consistent layout: %d mines for %d unknown cells",
            remaining_mines,
            len(unknowns),
        )
        return None

    unknown_set: Set[Coord] = set(unknowns)
    frontier: Set[Coord] = set()
    for constraint in constraints:
        frontier |= constraint.cells & unknown_set
    interior: List[Coord] = [c for c in unknowns if c not in frontier]

    state = _SearchState(remaining_mines, len(interior))
    _search(constraints, 0, 0, state, deadline, max(1, check_interval))

    if state.total_weight == 0:
        logger.debug(
            "Enumeration found no consistent layout (%d search nodes)", state.nodes
        )
        return None

    logger.debug(
        "Enumeration: %d frontier layouts, %d search nodes, %d interior cells",
        state.frontier_layouts,
        state.nodes,
        len(interior),
    )

    probabilities: Dict[Coord, float] = {}
    interior_probability = (
        state.interior_mine_weight / (len(interior) * state.total_weight)
        if interior
        else 0.0
    )
    for cell in unknowns:
        if cell in frontier:
            probabilities[cell] = state.mine_weight[cell] / state.total_weight
        else:
            probabilities[cell] = interior_probability
    return probabilities


def _search(
    constraints: Sequence[Constraint],
    i: int,
    mines_used: int,
    state: _SearchState,
    deadline: Optional[Deadline],
    check_interval: int,
) -> None:
    """Depth-first search over constraint i's still-unassigned cells."""
    state.nodes += 1
    if deadline is not None and state.nodes % check_interval == 0:
        deadline.check()

    if i == len(constraints):
        _record_layout(mines_used, state)
        return

    constraint = constraints[i]
    assigned_mines = 0
    unassigned: List[Coord] = []
    for cell in sorted(constraint.cells):
        v = state.assignment.get(cell)
        if v is None:
            unassigned.append(cell)
        elif v:
            assigned_mines += 1

    needed = constraint.mine_count - assigned_mines
    if (
        needed < 0
        or needed > len(unassigned)
        or mines_used + needed > state.remaining_mines
    ):
        return

    for mines_tuple in itertools.combinations(unassigned, needed):
        mines_set = set(mines_tuple)
        for cell in unassigned:
            state.assignment[cell] = cell in mines_set

        _search(constraints, i + 1, mines_used + needed, state, deadline, check_interval)

    for cell in unassigned:
        del state.assignment[cell]


def _record_layout(mines_used: int, state: _SearchState) -> None:
    """Credit one complete frontier layout with its interior completions."""
    leftover = state.remaining_mines - mines_used
    if leftover < 0 or leftover > state.interior_count:
        return

    weight = comb(state.interior_count, leftover)
    state.frontier_layouts += 1
    state.total_weight += weight
    state.interior_mine_weight += weight * leftover
    for cell, has_mine in state.assignment.items():
        if has_mine:
            state.mine_weight[cell] += weight
