import logging
import random
import re
from typing import List, Optional

from srbot.game.exceptions import FormulaError, ExplodingDiceError
from srbot.game.models.roll_models import DieResult, RollResult

logger = logging.getLogger(__name__)

# (num_dice)d(sides)[x(explode_on)][kh(keep)]cs>=(threshold)
_FORMULA_RE = re.compile(r'(\d+)d(\d+)(?:x(\d+))?(?:kh(\d+))?cs>=(\d+)')

MAX_DICE = 1000  # Practical limit to prevent abuse/performance issues
MAX_EXPLOSIONS = 1000


def roll_dice(formula: str, rng: Optional[random.Random] = None) -> RollResult:
    """
    Executes a compiled success-counting formula such as "6d6x6kh4cs>=5".

    Args:
        formula: A formula produced by the formula compiler.
        rng: Randomness source; anything with a `randint(a, b)` method.
             Defaults to the `random` module. Pass a seeded `random.Random` in tests.

    Returns:
        A RollResult with every rolled die (exploded dice appended after the
        base dice, in roll order) and the number of hits.

    Raises:
        FormulaError: If the formula cannot be parsed. This is a compiler defect,
                      not a user error.
        ExplodingDiceError: If sixes keep exploding past MAX_EXPLOSIONS.
    """
    match = _FORMULA_RE.fullmatch(formula.strip().lower()) if isinstance(formula, str) else None
    if not match:
        raise FormulaError(f"Invalid roll formula: '{formula}'. Expected e.g. '6d6cs>=5' or '6d6x6kh4cs>=5'.")

    num_dice_str, sides_str, explode_str, keep_str, threshold_str = match.groups()
    num_dice = int(num_dice_str)
    sides = int(sides_str)
    explode_on = int(explode_str) if explode_str else None
    keep = int(keep_str) if keep_str else None
    threshold = int(threshold_str)

    if sides <= 1:
        raise FormulaError(f"Die sides must be at least 2 in formula '{formula}'.")
    if num_dice > MAX_DICE:
        raise FormulaError(f"Cannot roll more than {MAX_DICE} dice at once (formula '{formula}').")
    if explode_on is not None and not 1 < explode_on <= sides:
        raise FormulaError(f"Explode target {explode_on} is outside 2..{sides} in formula '{formula}'.")

    source = rng if rng is not None else random
    faces: List[int] = [source.randint(1, sides) for _ in range(num_dice)]
    exploded: List[bool] = [False] * len(faces)

    if explode_on is not None:
        # Walk the growing list so that exploded dice can explode again.
        i = 0
        explosions = 0
        while i < len(faces):
            if faces[i] == explode_on:
                explosions += 1
                if explosions > MAX_EXPLOSIONS:
                    raise ExplodingDiceError(f"Dice exploded {MAX_EXPLOSIONS} times, stopping to prevent infinite loop")
                exploded[i] = True
                faces.append(source.randint(1, sides))
                exploded.append(False)
            i += 1

    discarded = [False] * len(faces)
    if keep is not None and keep < len(faces):
        # Highest faces first; ties keep the earlier die.
        order = sorted(range(len(faces)), key=lambda idx: (-faces[idx], idx))
        for idx in order[keep:]:
            discarded[idx] = True

    dice: List[DieResult] = []
    hits = 0
    for face, did_explode, dropped in zip(faces, exploded, discarded):
        success = not dropped and face >= threshold
        if success:
            hits += 1
        dice.append(DieResult(result=face, success=success, exploded=did_explode, discarded=dropped))

    logger.debug(f"roll_dice: {formula} -> {faces} ({hits} hits)")
    return RollResult(formula=formula, dice=dice, total=hits)
