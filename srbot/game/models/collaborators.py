"""
Interfaces the roll engine consumes from the character and item layers.

The engine only reads from these objects, with one exception: an edge-boosted
roll asks the actor to decrement its own edge through `update`. The actor is
the sole owner of that counter and is expected to serialize its updates.
"""
from enum import Flag, auto
from typing import Optional, Dict, Any, Protocol, runtime_checkable

from srbot.game.models.roll_models import EdgeValue, Limit, ModList


class ItemCapability(Flag):
    NONE = 0
    HAS_TEMPLATE = auto()
    HAS_OPPOSED_ROLL = auto()
    MELEE_WEAPON = auto()
    RANGED_WEAPON = auto()


@runtime_checkable
class RollToken(Protocol):
    id: str
    scene_id: str


@runtime_checkable
class RollActor(Protocol):
    name: str
    img: str
    token: Optional[RollToken]

    def get_edge(self) -> EdgeValue: ...

    def get_wounds(self) -> int: ...

    async def update(self, data: Dict[str, Any]) -> None: ...


@runtime_checkable
class RollItem(Protocol):
    name: str
    img: str
    actor: Optional[RollActor]
    capabilities: ItemCapability

    def get_roll_parts_list(self) -> ModList: ...

    def get_limit(self) -> Optional[Limit]: ...

    def get_roll_name(self) -> str: ...

    def get_attack_data(self, hits: int) -> Optional[Dict[str, Any]]: ...

    def get_blast_data(self) -> Optional[Dict[str, Any]]: ...

    def get_opposed_test_name(self) -> str: ...

    def get_reach(self) -> int: ...

    def get_last_fire_mode(self) -> Optional[Dict[str, Any]]: ...

    def get_chat_data(self) -> Dict[str, Any]: ...


EDGE_VALUE_KEY = "attributes.edge.value"
