"""Error taxonomy for the probability engine and hint selector.

Only :class:`InvalidInputError` ever reaches a caller of the public API
directly (from the extractor and coordinate-taking helpers). Timeouts and
failures raised inside the inference tiers are absorbed by the calculator's
fallback chain. An exact search that finds no consistent mine placement is not
an exception at all: the solver returns ``None``.
"""


class MineAssistError(Exception):
    """Base class for all errors raised by mineassist."""


class InvalidInputError(MineAssistError, ValueError):
    """The board or the coordinates handed to the engine are unusable."""


class CalculationTimeout(MineAssistError, TimeoutError):
    """A soft wall-clock deadline was exceeded mid-calculation."""


class CalculationFailure(MineAssistError, RuntimeError):
    """Any other internal failure while solving."""
