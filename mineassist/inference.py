"""The tiered inference algorithm shared by in-process and worker execution.

Both :class:`~mineassist.calculator.ProbabilityCalculator` and the worker
processes used by :class:`~mineassist.calculator.ParallelProbabilityCalculator`
call :func:`run_inference`; only the :class:`ExecutionContext` differs.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .board import BoardSnapshot, BoardView
from .constraints import extract_constraints
from .enumeration import enumerate_probabilities
from .errors import CalculationTimeout
from .models import Coord, Method, ProbabilitySnapshot
from .propagation import propagate_probabilities
from .sampling import sample_probabilities
from .utils import Deadline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionContext:
    """
    Per-context limits for the inference tiers.

    Attributes:
        name: Label used in logs.
        enumeration_threshold: Largest number of unknown cells solved exactly.
        max_samples: Cap on the Monte Carlo sample budget.
        samples_per_unknown: Monte Carlo budget per unknown cell before the cap.
        check_interval: Iterations between deadline checks.
    """

    name: str
    enumeration_threshold: int
    max_samples: int
    samples_per_unknown: int
    check_interval: int


IN_PROCESS = ExecutionContext("in_process", 20, 10_000, 1000, 1000)
WORKER = ExecutionContext("worker", 15, 5000, 500, 500)


def run_inference(
    board: BoardView,
    context: ExecutionContext,
    timeout_ms: float,
    rng: np.random.Generator,
    *,
    use_propagation: bool = True,
    generation: int = 0,
) -> ProbabilitySnapshot:
    """
    Compute a probability snapshot, degrading through the fallback chain.

    The deterministic tier (exact enumeration, or constraint propagation when
    there are more unknowns than ``context.enumeration_threshold``) runs
    against half of ``timeout_ms``. A timeout, an exception, an inconsistent
    board or a late result hands over to Monte Carlo sampling with a fresh
    ``timeout_ms`` budget, which itself falls back to the uniform density.
    If even that fails an empty snapshot is returned. Nothing is raised.
    """
    exact_deadline = Deadline.from_ms(timeout_ms / 2, "exact calculation")
    try:
        probabilities, strategy = _deterministic_tier(
            board, context, exact_deadline, use_propagation
        )
        if probabilities is None:
            logger.info(
                "[%s] %s produced no result; falling back to Monte Carlo",
                context.name,
                strategy,
            )
        elif exact_deadline.expired():
            logger.warning(
                "[%s] %s finished after its %.0f ms budget; falling back to Monte Carlo",
                context.name,
                strategy,
                timeout_ms / 2,
            )
        else:
            logger.debug(
                "[%s] %s solved %d cells in %.3fs",
                context.name,
                strategy,
                len(probabilities),
                exact_deadline.elapsed(),
            )
            return ProbabilitySnapshot(
                probabilities, Method.EXACT, strategy, generation=generation
            )
    except CalculationTimeout as exc:
        logger.warning("[%s] %s; falling back to Monte Carlo", context.name, exc)
    except Exception as exc:
        logger.warning(
            "[%s] exact calculation failed, falling back to Monte Carlo: %s",
            context.name,
            exc,
            exc_info=True,
        )

    mc_deadline = Deadline.from_ms(timeout_ms, "Monte Carlo sampling")
    try:
        result = sample_probabilities(
            board,
            rng,
            max_samples=context.max_samples,
            samples_per_unknown=context.samples_per_unknown,
            check_interval=context.check_interval,
            deadline=mc_deadline,
        )
    except Exception as exc:
        logger.error(
            "[%s] Monte Carlo calculation failed; returning an empty snapshot: %s",
            context.name,
            exc,
            exc_info=True,
        )
        return ProbabilitySnapshot.empty(Method.MONTE_CARLO, generation)

    strategy = "uniform" if result.uniform else "sampling"
    return ProbabilitySnapshot(
        result.probabilities, Method.MONTE_CARLO, strategy, generation=generation
    )


def _deterministic_tier(
    board: BoardView,
    context: ExecutionContext,
    deadline: Deadline,
    use_propagation: bool,
) -> Tuple[Optional[Dict[Coord, float]], str]:
    constraints, unknowns = extract_constraints(board)
    if not unknowns:
        return {}, "enumeration"

    deadline.check()
    if len(unknowns) <= context.enumeration_threshold:
        return (
            enumerate_probabilities(
                constraints,
                unknowns,
                board.remaining_mines(),
                deadline=deadline,
                check_interval=context.check_interval,
            ),
            "enumeration",
        )

    if not use_propagation:
        return None, "propagation (disabled)"
    return (
        propagate_probabilities(constraints, unknowns, board.remaining_mines()),
        "propagation",
    )


# -----------------------------------------------------------------------------
# Worker protocol
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkerRequest:
    """One delegated calculation; ``request_id`` correlates the reply."""

    request_id: str
    board: BoardSnapshot
    context: ExecutionContext
    timeout_ms: float
    seed: int
    use_propagation: bool = True
    generation: int = 0


@dataclass(frozen=True)
class WorkerReply:
    request_id: str
    snapshot: Optional[ProbabilitySnapshot] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.snapshot is not None


def solve_request(request: WorkerRequest) -> WorkerReply:
    """Worker-process entry point: run the shared algorithm on a board snapshot."""
    try:
        snapshot = run_inference(
            request.board,
            request.context,
            request.timeout_ms,
            np.random.default_rng(request.seed),
            use_propagation=request.use_propagation,
            generation=request.generation,
        )
    except Exception as exc:
        return WorkerReply(request.request_id, error=f"{type(exc).__name__}: {exc}")
    return WorkerReply(request.request_id, snapshot=snapshot)
