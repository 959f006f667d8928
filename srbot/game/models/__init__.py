from .roll_models import (
    ModList,
    Limit,
    EdgeValue,
    DialogOptions,
    RollRequest,
    DieResult,
    RollResult,
    RollHeader,
    TemplateData,
    RollOutcome,
)
from .collaborators import ItemCapability, RollActor, RollItem, RollToken
