import logging
from typing import Optional, NamedTuple, Mapping, Any

from srbot.game.exceptions import DicePoolTooLargeError
from srbot.game.models.roll_models import Limit
from srbot.game.rules.modifiers import total_mods

logger = logging.getLogger(__name__)

DICE_SIDES = 6
SUCCESS_THRESHOLD = 5
ZERO_POOL_FORMULA = f"0d{DICE_SIDES}cs>={SUCCESS_THRESHOLD}"
MAX_DICE_POOL = 1000

# i18n key of the user-facing warning for an empty pool
ROLL_ONE_DIE = "SR5.RollOneDie"


class CompiledFormula(NamedTuple):
    formula: str
    pool_size: int
    threshold: int = SUCCESS_THRESHOLD
    warning: Optional[str] = None  # i18n key, set only for the zero-pool fallback


def compile_formula(pool_size: int, limit: Optional[Limit] = None, explode: bool = False) -> CompiledFormula:
    """
    Builds the dice expression for a pool.

    Segment order is fixed: pool, explode (x6), keep highest (khN), success count (cs>=5).
    A limit of zero or less means no limit.
    A pool of zero or less yields the zero-dice fallback and a warning key.
    A pool over MAX_DICE_POOL raises DicePoolTooLargeError.
    """
    if pool_size <= 0:
        logger.warning(f"compile_formula: dice pool is {pool_size}, a roll requires at least one die.")
        return CompiledFormula(ZERO_POOL_FORMULA, pool_size, SUCCESS_THRESHOLD, ROLL_ONE_DIE)

    if pool_size > MAX_DICE_POOL:
        raise DicePoolTooLargeError(pool_size, MAX_DICE_POOL)

    formula = f"{pool_size}d{DICE_SIDES}"
    if explode:
        formula += f"x{DICE_SIDES}"
    if limit is not None and limit.value > 0:
        formula += f"kh{limit.value}"
    formula += f"cs>={SUCCESS_THRESHOLD}"
    return CompiledFormula(formula, pool_size)


def shadowrun_formula(parts: Mapping[str, Any], limit: Optional[Limit] = None, explode: bool = False) -> str:
    return compile_formula(total_mods(parts), limit, explode).formula
