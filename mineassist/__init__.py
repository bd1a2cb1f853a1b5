"""
Minesweeper AI Assistant

Mine probabilities and move hints for partially revealed Minesweeper boards:
- Exact enumeration: true marginals for small unknown regions
- Constraint propagation: fast single-pass estimate for large boards
- Monte Carlo sampling: randomized fallback with a uniform last resort
- Hint selection: certain moves first, then the safest available guess
- Game review: judge recorded moves, suggest improvements, track trends
"""

from .board import Board, BoardSnapshot, BoardView, Cell, GameState
from .calculator import ParallelProbabilityCalculator, ProbabilityCalculator, SolverConfig
from .constraints import Constraint, extract_constraints
from .errors import (
    CalculationFailure,
    CalculationTimeout,
    InvalidInputError,
    MineAssistError,
)
from .hints import HintEngine
from .inference import IN_PROCESS, WORKER, ExecutionContext, run_inference
from .models import (
    Action,
    GameAnalysis,
    Method,
    MoveRecord,
    MoveSuggestion,
    ProbabilitySnapshot,
    SkillArea,
)
from .review import GameAnalyzer, record_move

__version__ = "1.0.0"

__all__ = [
    # Board
    "Board",
    "BoardSnapshot",
    "BoardView",
    "Cell",
    "GameState",
    # Inference
    "Constraint",
    "extract_constraints",
    "ExecutionContext",
    "IN_PROCESS",
    "WORKER",
    "run_inference",
    "ProbabilityCalculator",
    "ParallelProbabilityCalculator",
    "SolverConfig",
    # Hints
    "HintEngine",
    # Review
    "GameAnalyzer",
    "GameAnalysis",
    "MoveRecord",
    "SkillArea",
    "record_move",
    # Values
    "Action",
    "Method",
    "MoveSuggestion",
    "ProbabilitySnapshot",
    # Errors
    "MineAssistError",
    "InvalidInputError",
    "CalculationTimeout",
    "CalculationFailure",
]
