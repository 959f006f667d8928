from .exceptions import (
    RollEngineError,
    PreconditionViolationError,
    FormulaError,
    ExplodingDiceError,
    DialogClosedError,
    DicePoolTooLargeError,
)

__all__ = [
    "RollEngineError",
    "PreconditionViolationError",
    "FormulaError",
    "ExplodingDiceError",
    "DialogClosedError",
    "DicePoolTooLargeError",
]
