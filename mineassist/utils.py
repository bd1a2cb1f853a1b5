"""Utility helpers shared by the board and the inference tiers."""

import time
from typing import Dict, List, Optional, Tuple

from .errors import CalculationTimeout

# Module-level cache: (width, height) -> {(x,y): ((nx,ny), ...), ...}
_NEIGHBORHOODS_CACHE: Dict[
    Tuple[int, int],
    Dict[Tuple[int, int], Tuple[Tuple[int, int], ...]]
] = {}


def get_neighborhoods(
    width: int, height: int
) -> Dict[Tuple[int, int], Tuple[Tuple[int, int], ...]]:
    """
    Precompute and cache 8-connected neighbor coordinates for every cell in a grid.

    Neighbors are listed in row-major order (top row first, left to right),
    clipped at the board edges.

    Args:
        width: Grid width (number of columns). Must be positive.
        height: Grid height (number of rows). Must be positive.

    Returns:
        Mapping from each cell (x, y) to a tuple of valid neighboring
        coordinates (nx, ny).

    Raises:
        ValueError: If width or height is non-positive.
    """
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive.")

    key = (width, height)
    cached = _NEIGHBORHOODS_CACHE.get(key)
    if cached is not None:
        return cached

    neighborhoods: Dict[Tuple[int, int], Tuple[Tuple[int, int], ...]] = {}
    for y in range(height):
        for x in range(width):
            nbrs: List[Tuple[int, int]] = []
            for dy in (-1, 0, 1):
                for dx in (-1, 0, 1):
                    if dx == 0 and dy == 0:
                        continue
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < width and 0 <= ny < height:
                        nbrs.append((nx, ny))
            neighborhoods[(x, y)] = tuple(nbrs)

    _NEIGHBORHOODS_CACHE[key] = neighborhoods
    return neighborhoods


def clamp_probability(value: float) -> float:
    """Clamp a probability estimate into [0, 1]."""
    return max(0.0, min(1.0, value))


class Deadline:
    """
    Soft wall-clock budget polled by long-running loops.

    A deadline built with ``seconds=None`` never expires. Loops are expected
    to call :meth:`check` every fixed number of iterations; nothing is
    interrupted preemptively.
    """

    def __init__(self, seconds: Optional[float], label: str = "calculation") -> None:
        self.label = label
        self.started_at: float = time.monotonic()
        self.expires_at: Optional[float] = (
            None if seconds is None else self.started_at + max(0.0, seconds)
        )

    @classmethod
    def from_ms(cls, ms: Optional[float], label: str = "calculation") -> "Deadline":
        return cls(None if ms is None else ms / 1000.0, label)

    def elapsed(self) -> float:
        """Seconds since the deadline was created."""
        return time.monotonic() - self.started_at

    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def check(self) -> None:
        """
        Raise if the budget is spent.

        Raises:
            CalculationTimeout: If the deadline has passed.
        """
        if self.expired():
            raise CalculationTimeout(
                f"{self.label} exceeded its budget after {self.elapsed():.3f}s"
            )
