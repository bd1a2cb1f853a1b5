"""Value types produced by the probability engine and the hint selector."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

Coord = Tuple[int, int]


class Method(str, Enum):
    """Which family of algorithms produced a probability snapshot."""

    EXACT = "exact"
    MONTE_CARLO = "monte_carlo"


class Action(str, Enum):
    """What a move suggestion asks the player to do."""

    REVEAL = "reveal"
    FLAG = "flag"


class SkillArea(str, Enum):
    """Playing skills a reviewed game can demonstrate."""

    PATTERN_RECOGNITION = "pattern_recognition"
    PROBABILITY_ANALYSIS = "probability_analysis"
    STRATEGIC_PLANNING = "strategic_planning"
    RISK_ASSESSMENT = "risk_assessment"


@dataclass(frozen=True)
class ProbabilitySnapshot:
    """
    Per-cell mine probabilities from one inference call.

    Attributes:
        probabilities: Read-only (x, y) -> probability in [0, 1], copied from
            the mapping passed in. Only cells that were neither revealed nor
            flagged have entries.
        method: EXACT for the deterministic tiers (enumeration, propagation),
            MONTE_CARLO for sampling and its uniform fallback.
        strategy: The concrete tier that produced the values: "enumeration",
            "propagation", "sampling", "uniform" or "none".
        timestamp: When the calculation finished.
        generation: Request number assigned by the calculator; 0 when the
            snapshot was produced outside a calculator.
    """

    probabilities: Mapping[Coord, float]
    method: Method
    strategy: str = "none"
    timestamp: datetime = field(default_factory=datetime.now)
    generation: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "probabilities", MappingProxyType(dict(self.probabilities)))

    # mappingproxy does not pickle; worker replies carry snapshots
    def __getstate__(self) -> Dict[str, Any]:
        state = dict(self.__dict__)
        state["probabilities"] = dict(self.probabilities)
        return state

    def __setstate__(self, state: Dict[str, Any]) -> None:
        for name, value in state.items():
            object.__setattr__(self, name, value)
        object.__setattr__(self, "probabilities", MappingProxyType(dict(state["probabilities"])))

    @classmethod
    def empty(cls, method: Method = Method.MONTE_CARLO, generation: int = 0) -> "ProbabilitySnapshot":
        return cls({}, method, "none", generation=generation)

    def get(self, x: int, y: int, default: Optional[float] = None) -> Optional[float]:
        return self.probabilities.get((x, y), default)

    def is_empty(self) -> bool:
        return not self.probabilities

    def __contains__(self, cell: object) -> bool:
        return cell in self.probabilities

    def __iter__(self) -> Iterator[Coord]:
        return iter(self.probabilities)

    def __len__(self) -> int:
        return len(self.probabilities)


@dataclass(frozen=True)
class MoveSuggestion:
    """A recommended reveal/flag with its confidence and a justification."""

    cell: Coord
    action: Action
    confidence: float
    reasoning: str
    expected_information: float = 0.0

    @property
    def x(self) -> int:
        return self.cell[0]

    @property
    def y(self) -> int:
        return self.cell[1]


@dataclass(frozen=True)
class MoveRecord:
    """
    One move of a played game, as seen by the hint engine at the time.

    Attributes:
        cell: (x, y) that was acted on.
        action: REVEAL or FLAG.
        timestamp: When the move was made.
        was_optimal: Whether the move matched the engine's best option;
            None when no snapshot was available to judge it.
        alternatives: The engine's options before the move, best first.
        hint_used: True if the player asked for (or followed) a hint.
    """

    cell: Coord
    action: Action
    timestamp: datetime = field(default_factory=datetime.now)
    was_optimal: Optional[bool] = None
    alternatives: Tuple[MoveSuggestion, ...] = ()
    hint_used: bool = False

    @property
    def x(self) -> int:
        return self.cell[0]

    @property
    def y(self) -> int:
        return self.cell[1]


@dataclass
class GameAnalysis:
    """Review of one finished game."""

    game_id: str
    total_moves: int
    optimal_moves: int
    hints_used: int
    critical_mistakes: List[MoveRecord] = field(default_factory=list)
    missed_opportunities: List[MoveRecord] = field(default_factory=list)
    strategic_insights: List[str] = field(default_factory=list)
    skills_demonstrated: List[SkillArea] = field(default_factory=list)

    @property
    def efficiency(self) -> float:
        return self.optimal_moves / self.total_moves if self.total_moves else 0.0
