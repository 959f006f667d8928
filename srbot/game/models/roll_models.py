from typing import Optional, Dict, Any, List, Callable, Union
from pydantic import BaseModel, ConfigDict, Field

# Ordered mapping of modifier label (an i18n key such as "SR5.Wounds") to its contribution.
ModList = Dict[str, Any]


class Limit(BaseModel):
    """
    A rule-mandated cap on kept dice (keep-highest-N).
    When overridden in the roll dialog, `label` becomes "SR5.Override" and `base` follows `value`.
    """
    value: int = 0
    base: int = 0
    label: str = ""


class EdgeValue(BaseModel):
    value: int = 0
    max: int = 0


class DialogOptions(BaseModel):
    environmental: Optional[Union[bool, int]] = None
    prompt: bool = False  # Bare numeric entry instead of a modifier review


class RollRequest(BaseModel):
    """
    Everything needed to run one roll. Built fresh per invocation and mutated
    in place by the roll dialog; never shared across concurrent rolls.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # Basic roll fields
    parts: ModList = Field(default_factory=dict)
    limit: Optional[Limit] = None
    explode_sixes: bool = False
    title: Optional[str] = None
    name: Optional[str] = None
    img: Optional[str] = None
    actor: Optional[Any] = None  # RollActor
    item: Optional[Any] = None  # RollItem
    hide_roll_message: bool = False

    # Pass-through data for the chat card
    attack: Optional[Dict[str, Any]] = None
    blast: Optional[Dict[str, Any]] = None
    reach: Optional[int] = None
    fire_mode: Optional[str] = None
    tests: Optional[List[Dict[str, str]]] = None
    description: Optional[Any] = None
    preview_template: bool = False
    incoming_attack: Optional[Dict[str, Any]] = None
    incoming_drain: Optional[Dict[str, Any]] = None
    soak: Optional[Dict[str, Any]] = None

    # Advanced roll fields
    event: Optional[Any] = None
    extended: bool = False
    wounds: bool = True
    after: Optional[Callable[..., Any]] = None
    dialog_options: Optional[DialogOptions] = None
    user_id: Optional[str] = None


# RollRequest fields copied verbatim onto the chat card.
TEMPLATE_EXTRA_FIELDS = (
    "item", "attack", "blast", "reach", "fire_mode", "tests", "description",
    "preview_template", "incoming_attack", "incoming_drain", "soak",
)


class DieResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    result: int
    success: bool = False
    exploded: bool = False  # This die showed a six and triggered another roll
    discarded: bool = False  # Dropped by keep-highest


class RollResult(BaseModel):
    """Raw output of the roll executor."""
    model_config = ConfigDict(frozen=True)

    formula: str
    dice: List[DieResult] = []
    total: int = 0

    @property
    def faces(self) -> List[int]:
        return [die.result for die in self.dice]


class RollHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    img: str = ""


class TemplateData(BaseModel):
    """
    Denormalized data handed to the chat collaborator.
    Unknown keys (attack, blast, tests, ...) are accepted and kept as extras.
    """
    model_config = ConfigDict(frozen=True, extra='allow', arbitrary_types_allowed=True)

    actor: Optional[Any] = None
    header: RollHeader = RollHeader()
    token_id: Optional[str] = None
    dice: List[DieResult] = []
    limit: Optional[Limit] = None
    test_name: Optional[str] = None
    dice_pool: int = 0
    parts: ModList = {}
    hits: int = 0


class RollOutcome(BaseModel):
    """An executed roll. Immutable once created."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    formula: str
    dice: List[DieResult] = []
    total: int = 0  # Number of hits
    template_data: TemplateData

    @property
    def hits(self) -> int:
        return self.total

    @property
    def faces(self) -> List[int]:
        return [die.result for die in self.dice]
