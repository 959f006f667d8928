# srbot/game/exceptions.py

class RollEngineError(Exception):
    """Base class for dice-pool roll engine errors."""
    pass

class PreconditionViolationError(RollEngineError):
    """Raised when an edge-boosted roll is reached without an associated actor."""
    pass

class FormulaError(RollEngineError):
    """Raised when the roll executor cannot parse a compiled formula."""
    pass

class ExplodingDiceError(FormulaError):
    """Raised when exploding sixes exceed the explosion cap."""
    pass

class DialogClosedError(RollEngineError):
    """Raised when an action is taken on a dialog that already reached a terminal state."""
    pass

class DicePoolTooLargeError(RollEngineError):
    """Raised when a dice pool exceeds the number of dice one roll may use."""
    def __init__(self, pool_size: int, max_pool: int):
        super().__init__(f"Dice pool {pool_size} exceeds the maximum of {max_pool} dice.")
        self.pool_size = pool_size
        self.max_pool = max_pool
