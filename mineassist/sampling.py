"""Monte Carlo estimate of mine probabilities with a uniform last resort."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from .board import BoardView
from .constraints import extract_clues, list_unknowns
from .models import Coord
from .utils import Deadline, clamp_probability

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplingResult:
    probabilities: Dict[Coord, float]
    valid_samples: int
    drawn_samples: int

    @property
    def uniform(self) -> bool:
        """True when no sample was consistent and the uniform fallback was used."""
        return self.valid_samples == 0 and bool(self.probabilities)


# Upper bound on array cells one batch touches (draws, mine placement, clue sums).
WORK_PER_BATCH = 250_000


def sample_probabilities(
    board: BoardView,
    rng: np.random.Generator,
    max_samples: int = 10_000,
    samples_per_unknown: int = 1000,
    check_interval: int = 1000,
    deadline: Optional[Deadline] = None,
) -> SamplingResult:
    """
    Estimate mine probabilities from random layouts consistent with the board.

    Each sample puts the remaining mines on a uniformly random subset of the
    unknown cells. A sample is kept iff every revealed number sees exactly its
    adjacent-mine count, with flags and revealed mines counted as mines.
    Numbers without hidden neighbors are checked once up front; the others
    are checked per sample through index arrays, so a sample costs time
    linear in the unknowns plus the clue-neighbor pairs.

    Samples are drawn in batches of at most ``check_interval``, further capped
    so that no batch touches more than ``WORK_PER_BATCH`` array cells. The
    deadline is polled before each batch, so an expired budget ends sampling
    early instead of raising.

    Args:
        board: Board to sample against.
        rng: Seedable random source; identical seeds replay identical samples.
        max_samples: Hard cap on the sample budget.
        samples_per_unknown: Budget per unknown cell before the cap applies.
        check_interval: Largest batch (and number of samples between
            deadline checks).
        deadline: Optional wall-clock budget.

    Returns:
        Per-cell hit frequencies over the valid samples, or the uniform
        density ``remaining_mines / unknowns`` when no sample was valid.
    """
    unknowns = list_unknowns(board)
    n = len(unknowns)
    if n == 0:
        return SamplingResult({}, 0, 0)

    mines = max(0, board.remaining_mines())
    k = min(mines, n)
    budget = min(max_samples, n * samples_per_unknown)

    index = {cell: i for i, cell in enumerate(unknowns)}
    columns: List[int] = []
    starts: List[int] = []
    targets_list: List[int] = []
    satisfiable = True
    for clue in extract_clues(board):
        target = clue.adjacent_mines - clue.known_mines
        if not clue.hidden:
            satisfiable = satisfiable and target == 0
            continue
        starts.append(len(columns))
        columns.extend(index[cell] for cell in clue.hidden)
        targets_list.append(target)

    cols = np.array(columns, dtype=np.intp)
    offsets = np.array(starts, dtype=np.intp)
    targets = np.array(targets_list, dtype=np.int64)
    per_sample_work = 2 * n + len(cols)
    batch_size = max(1, min(check_interval, WORK_PER_BATCH // per_sample_work))

    hits = np.zeros(n, dtype=np.int64)
    valid = 0
    drawn = 0
    if not satisfiable:
        logger.debug("A revealed number without hidden neighbors is contradicted")
        budget = 0

    while drawn < budget:
        if deadline is not None and deadline.expired():
            logger.warning(
                "Monte Carlo sampling timed out after %d of %d samples", drawn, budget
            )
            break

        size = min(batch_size, budget - drawn)
        layouts = np.zeros((size, n), dtype=np.int8)
        if k:
            # The k smallest of n i.i.d. keys form a uniformly random k-subset
            keys = rng.random((size, n))
            chosen = np.argpartition(keys, k - 1, axis=1)[:, :k]
            np.put_along_axis(layouts, chosen, 1, axis=1)

        if len(offsets):
            seen = np.add.reduceat(layouts[:, cols], offsets, axis=1)
            consistent = np.all(seen == targets, axis=1)
        else:
            consistent = np.ones(size, dtype=bool)

        hits += layouts[consistent].sum(axis=0)
        valid += int(consistent.sum())
        drawn += size

    if valid == 0:
        uniform = clamp_probability(mines / n)
        logger.info(
            "No consistent sample in %d draws; using uniform density %.4f", drawn, uniform
        )
        return SamplingResult({cell: uniform for cell in unknowns}, 0, drawn)

    probabilities = {
        cell: clamp_probability(float(hits[i]) / valid) for i, cell in enumerate(unknowns)
    }
    logger.debug("Monte Carlo: %d valid of %d samples", valid, drawn)
    return SamplingResult(probabilities, valid, drawn)
