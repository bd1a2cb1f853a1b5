"""Probability orchestrator: timeout budget, fallback chain, current snapshot, delegation."""

import itertools
import logging
import threading
import time
import uuid
from collections import Counter
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import numpy as np

from .board import BoardSnapshot, BoardView
from .constraints import count_unknowns, validate_board, validate_coordinates
from .errors import CalculationFailure, CalculationTimeout, InvalidInputError
from .inference import (
    IN_PROCESS,
    WORKER,
    ExecutionContext,
    WorkerReply,
    WorkerRequest,
    run_inference,
    solve_request,
)
from .models import Method, ProbabilitySnapshot

logger = logging.getLogger(__name__)


@dataclass
class SolverConfig:
    """
    Tunables for a probability calculator.

    Attributes:
        timeout_ms: Total wall-clock budget per calculation. The exact tier
            gets half of it; Monte Carlo gets a fresh full budget.
        enumeration_threshold: Largest number of unknown cells solved exactly
            in-process. Worker processes use the lower of this and their own
            limit.
        max_samples: Monte Carlo sample cap in-process.
        use_propagation: If False, boards above the enumeration threshold go
            straight to Monte Carlo instead of the propagation estimate.
        seed: Seed for the calculator's random source.
    """

    timeout_ms: float = 5000
    enumeration_threshold: int = 20
    max_samples: int = 10_000
    use_propagation: bool = True
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive.")
        if self.enumeration_threshold < 0:
            raise ValueError("enumeration_threshold must be non-negative.")
        if self.max_samples <= 0:
            raise ValueError("max_samples must be positive.")


class ProbabilityCalculator:
    """
    Computes probability snapshots and keeps the most recent one.

    ``calculate`` never raises: every failure below it degrades through exact
    enumeration (or propagation), Monte Carlo sampling, the uniform density
    and finally an empty snapshot.

    Each call takes a generation number. A finished snapshot only replaces
    the stored one if no newer generation was stored first, so a slow stale
    calculation cannot overwrite a fresher result. Instances are not meant to
    be shared between threads except where a subclass says otherwise.
    """

    def __init__(
        self,
        config: Optional[SolverConfig] = None,
        *,
        rng: Optional[np.random.Generator] = None,
        **overrides: Any,
    ) -> None:
        """
        Args:
            config: Base configuration; defaults to ``SolverConfig()``.
            rng: Random source for Monte Carlo sampling. Defaults to a
                generator seeded from ``config.seed``.
            **overrides: Field overrides applied on top of ``config``.
        """
        self.config: SolverConfig = replace(config or SolverConfig(), **overrides)
        self._rng: np.random.Generator = (
            rng if rng is not None else np.random.default_rng(self.config.seed)
        )
        self._lock = threading.Lock()
        self._generations = itertools.count(1)
        self._current: Optional[ProbabilitySnapshot] = None
        self._calculations = 0
        self._calculation_seconds = 0.0

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def current_snapshot(self) -> Optional[ProbabilitySnapshot]:
        return self._current

    @property
    def timeout_ms(self) -> float:
        return self.config.timeout_ms

    def set_timeout(self, ms: float) -> None:
        """Set the calculation budget; non-positive values are ignored with a warning."""
        if ms > 0:
            self.config.timeout_ms = ms
        else:
            logger.warning(
                "Invalid timeout value %r, keeping current timeout %r ms",
                ms,
                self.config.timeout_ms,
            )

    def last_method(self) -> Method:
        """Method of the current snapshot (EXACT before any calculation)."""
        return self._current.method if self._current is not None else Method.EXACT

    def calculate(self, board: BoardView) -> ProbabilitySnapshot:
        """Compute, store and return a fresh probability snapshot. Never raises."""
        start = time.perf_counter()
        with self._lock:
            generation = next(self._generations)

        try:
            validate_board(board)
            snapshot = self._compute(board, generation)
        except InvalidInputError as exc:
            logger.warning("Probability calculation rejected the board: %s", exc)
            snapshot = ProbabilitySnapshot.empty(generation=generation)
        except Exception as exc:
            logger.error("Probability calculation failed: %s", exc, exc_info=True)
            snapshot = ProbabilitySnapshot.empty(generation=generation)

        elapsed = time.perf_counter() - start
        with self._lock:
            self._calculations += 1
            self._calculation_seconds += elapsed
        self._store(snapshot)
        return snapshot

    def update(self, board: BoardView) -> None:
        """Recompute the current snapshot for ``board``."""
        self.calculate(board)

    def point_probability(self, board: BoardView, x: int, y: int) -> float:
        """
        Mine probability of one cell from the current snapshot.

        Returns 0 for revealed or flagged cells and on any failure, including
        invalid coordinates. Runs a full calculation if no snapshot exists.
        """
        try:
            validate_board(board)
            validate_coordinates(board, x, y)
            cell = board.get_cell(x, y)
            if cell is None or cell.is_revealed or cell.is_flagged:
                return 0.0

            snapshot = self._current
            if snapshot is None:
                snapshot = self.calculate(board)
            return float(snapshot.probabilities.get((x, y), 0.0))
        except Exception as exc:
            logger.warning("Point probability for (%r, %r) failed: %s", x, y, exc)
            return 0.0

    def close(self) -> None:
        """Release any execution resources."""

    def __enter__(self) -> "ProbabilityCalculator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def in_process_context(self) -> ExecutionContext:
        return replace(
            IN_PROCESS,
            enumeration_threshold=self.config.enumeration_threshold,
            max_samples=self.config.max_samples,
        )

    def _compute(self, board: BoardView, generation: int) -> ProbabilitySnapshot:
        return run_inference(
            board,
            self.in_process_context(),
            self.config.timeout_ms,
            self._rng,
            use_propagation=self.config.use_propagation,
            generation=generation,
        )

    def _store(self, snapshot: ProbabilitySnapshot) -> None:
        with self._lock:
            current = self._current
            if current is not None and current.generation > snapshot.generation:
                logger.debug(
                    "Discarding stale snapshot (generation %d < %d)",
                    snapshot.generation,
                    current.generation,
                )
                return
            self._current = snapshot


class ParallelProbabilityCalculator(ProbabilityCalculator):
    """
    Calculator that offloads large boards to a process pool.

    A board is delegated when its area exceeds ``AREA_THRESHOLD`` or it has
    more than ``UNKNOWN_THRESHOLD`` unknown cells, and fewer than
    ``MAX_OUTSTANDING`` delegated requests are in flight. Every request gets a
    correlation id and a client-side timeout; on timeout or any channel
    failure the id is dropped and the same algorithm runs in-process. A reply
    whose id is no longer registered is discarded.

    ``calculate`` may be called from several threads.
    """

    AREA_THRESHOLD = 100
    UNKNOWN_THRESHOLD = 20
    MAX_OUTSTANDING = 2

    def __init__(
        self,
        config: Optional[SolverConfig] = None,
        *,
        executor: Optional[Executor] = None,
        max_workers: int = 2,
        rng: Optional[np.random.Generator] = None,
        **overrides: Any,
    ) -> None:
        """
        Args:
            config: Base configuration.
            executor: Executor to delegate to. When omitted a
                ``ProcessPoolExecutor`` is created on first use and shut
                down by :meth:`close`.
            max_workers: Pool size for the owned executor.
            rng: Source of per-request seeds.
            **overrides: Field overrides applied on top of ``config``.
        """
        super().__init__(config, rng=rng, **overrides)
        self._executor: Optional[Executor] = executor
        self._owns_executor: bool = executor is None
        self._max_workers = max_workers
        self._pending: Dict[str, "Future[WorkerReply]"] = {}
        self._delegation_available: bool = True
        self._routes: Counter = Counter()
        self._last_route: Optional[str] = None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def delegation_available(self) -> bool:
        return self._delegation_available

    def performance_stats(self) -> Dict[str, Any]:
        """
        Routing and timing counters since construction.

        Returns:
            Dict with ``delegation_available``, ``pending_calculations``,
            ``last_route`` ("worker", "in_process" or None), ``last_method``,
            ``calculations``, ``delegated``, ``in_process``,
            ``worker_timeouts``, ``worker_failures`` and
            ``average_calculation_ms``.
        """
        with self._lock:
            calculations = self._calculations
            average = 1000.0 * self._calculation_seconds / calculations if calculations else 0.0
            return {
                "delegation_available": self._delegation_available,
                "pending_calculations": len(self._pending),
                "last_route": self._last_route,
                "last_method": self.last_method().value,
                "calculations": calculations,
                "delegated": self._routes["delegated"],
                "in_process": self._routes["in_process"],
                "worker_timeouts": self._routes["worker_timeouts"],
                "worker_failures": self._routes["worker_failures"],
                "average_calculation_ms": average,
            }

    def worker_context(self) -> ExecutionContext:
        return replace(
            WORKER,
            enumeration_threshold=min(
                WORKER.enumeration_threshold, self.config.enumeration_threshold
            ),
            max_samples=min(WORKER.max_samples, self.config.max_samples),
        )

    def should_delegate(self, board: BoardView) -> bool:
        if not self._delegation_available:
            return False
        if self.pending_count >= self.MAX_OUTSTANDING:
            return False
        area = board.width * board.height
        return area > self.AREA_THRESHOLD or count_unknowns(board) > self.UNKNOWN_THRESHOLD

    def close(self) -> None:
        with self._lock:
            self._pending.clear()
            executor, self._executor = self._executor, None
        if executor is not None and self._owns_executor:
            executor.shutdown(wait=False, cancel_futures=True)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _next_seed(self) -> int:
        with self._lock:
            return int(self._rng.integers(0, 2**63 - 1))

    def _compute(self, board: BoardView, generation: int) -> ProbabilitySnapshot:
        seed = self._next_seed()
        if self.should_delegate(board):
            try:
                snapshot = self._compute_in_worker(board, generation, seed)
            except CalculationTimeout as exc:
                self._record_route("worker_timeouts")
                logger.warning("%s; calculating in-process", exc)
            except Exception as exc:
                self._record_route("worker_failures")
                logger.warning(
                    "Worker calculation failed, falling back to in-process: %s", exc
                )
            else:
                self._record_route("delegated", "worker")
                return snapshot

        self._record_route("in_process", "in_process")
        return run_inference(
            board,
            self.in_process_context(),
            self.config.timeout_ms,
            np.random.default_rng(seed),
            use_propagation=self.config.use_propagation,
            generation=generation,
        )

    def _record_route(self, counter: str, route: Optional[str] = None) -> None:
        with self._lock:
            self._routes[counter] += 1
            if route is not None:
                self._last_route = route

    def _get_executor(self) -> Optional[Executor]:
        with self._lock:
            if self._executor is None and self._owns_executor:
                try:
                    self._executor = ProcessPoolExecutor(max_workers=self._max_workers)
                except (PermissionError, OSError, NotImplementedError) as exc:
                    logger.warning("Process pool unavailable, calculating in-process: %s", exc)
                    self._delegation_available = False
                    self._owns_executor = False
            return self._executor

    def _compute_in_worker(
        self, board: BoardView, generation: int, seed: int
    ) -> ProbabilitySnapshot:
        executor = self._get_executor()
        if executor is None:
            raise CalculationFailure("No executor available for delegation.")

        request_id = f"calc_{uuid.uuid4().hex[:12]}"
        request = WorkerRequest(
            request_id=request_id,
            board=BoardSnapshot.from_board(board),
            context=self.worker_context(),
            timeout_ms=self.config.timeout_ms,
            seed=seed,
            use_propagation=self.config.use_propagation,
            generation=generation,
        )

        try:
            future = executor.submit(solve_request, request)
        except (BrokenProcessPool, RuntimeError) as exc:
            self._delegation_available = False
            raise CalculationFailure(f"Cannot submit to worker pool: {exc}") from exc

        with self._lock:
            self._pending[request_id] = future
        logger.debug("Delegated calculation %s (generation %d)", request_id, generation)

        try:
            reply = future.result(timeout=self.config.timeout_ms / 1000.0)
        except FutureTimeoutError as exc:
            self._forget(request_id)
            future.cancel()
            raise CalculationTimeout(
                f"Worker calculation {request_id} timed out after {self.config.timeout_ms} ms"
            ) from exc
        except BrokenProcessPool as exc:
            self._forget(request_id)
            self._delegation_available = False
            raise CalculationFailure(f"Worker pool broke: {exc}") from exc
        except BaseException:
            self._forget(request_id)
            raise

        snapshot = self._accept_reply(reply)
        if snapshot is None:
            raise CalculationFailure(f"Reply for {request_id} was discarded.")
        return snapshot

    def _forget(self, request_id: str) -> None:
        with self._lock:
            self._pending.pop(request_id, None)

    def _accept_reply(self, reply: WorkerReply) -> Optional[ProbabilitySnapshot]:
        """
        Match a worker reply against the registry.

        Returns:
            The reply's snapshot, or None if the id is unknown (already timed
            out or closed).

        Raises:
            CalculationFailure: If the worker reported an error.
        """
        with self._lock:
            registered = self._pending.pop(reply.request_id, None) is not None
        if not registered:
            logger.warning("Received reply for unknown calculation %s", reply.request_id)
            return None
        if not reply.success:
            raise CalculationFailure(reply.error or "Worker calculation failed")
        return reply.snapshot
