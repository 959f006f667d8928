import logging
import math
from numbers import Number
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# Fixed modifier labels. They double as i18n keys (see srbot/game_data/roll_i18n.json).
WOUNDS = "SR5.Wounds"
SITUATIONAL_MODIFIER = "SR5.SituationalModifier"
ENVIRONMENT_MODIFIER = "SR5.EnvironmentModifier"
PUSH_THE_LIMIT = "SR5.PushTheLimit"
EXTENDED = "SR5.Extended"
PROMPT_BASE = "SR5.Base"
LAST_ROLL = "SR5.LastRoll"
LIMIT_OVERRIDE = "SR5.Override"


def _is_numeric(value: Any) -> bool:
    # bool is an int subclass but never a modifier
    if isinstance(value, bool) or not isinstance(value, Number):
        return False
    return not (isinstance(value, float) and not math.isfinite(value))


def total_mods(parts: Mapping[str, Any]) -> int:
    """
    Sums a modifier list into a dice pool size.
    Non-numeric values contribute nothing and never raise.
    """
    if not parts:
        return 0
    total = 0
    for label, value in parts.items():
        if _is_numeric(value):
            total += value
        else:
            logger.debug(f"total_mods: ignoring non-numeric modifier '{label}'={value!r}")
    return int(total)


def parse_input_to_number(value: Any) -> int:
    """
    Coerces a dialog field to an integer. Blank or unparseable input is 0;
    fractional input is truncated.
    """
    if _is_numeric(value):
        return int(value)
    if value is None or isinstance(value, bool):
        return 0
    text = str(value).strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return 0
