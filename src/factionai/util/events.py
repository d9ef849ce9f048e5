"""Typed event bus — observation of AI turns.

Observers (progress UI, logs, tests) subscribe to the events below.
Handlers never influence AI decisions.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar, Type

from factionai.models.faction import GoalType
from factionai.models.turn import AITurnStatus

T = TypeVar("T")


# -- Batch events --------------------------------------------------------

@dataclass(frozen=True)
class AITurnsStarted:
    """A batch of AI turns is about to run."""
    faction_ids: tuple[str, ...]


@dataclass(frozen=True)
class AITurnsFinished:
    """All AI turns of the batch have run."""
    completed: tuple[str, ...]
    failed: tuple[str, ...]


# -- Faction turn events -------------------------------------------------

@dataclass(frozen=True)
class AITurnStatusChanged:
    """Progress of the current faction's turn."""
    status: AITurnStatus


@dataclass(frozen=True)
class AIActionExecuted:
    """A queued action's effects were applied."""
    faction_id: str
    faction_name: str
    description: str


@dataclass(frozen=True)
class FactionTurnCompleted:
    faction_id: str


@dataclass(frozen=True)
class FactionTurnFailed:
    """A phase raised; only this faction's turn was aborted."""
    faction_id: str
    faction_name: str
    error: str


# -- Decision events -----------------------------------------------------

@dataclass(frozen=True)
class GoalChanged:
    """The goal phase committed a new goal."""
    faction_id: str
    goal_type: GoalType
    previous: Optional[GoalType] = None


@dataclass(frozen=True)
class PlanReplaced:
    """The planning phase stored a freshly generated plan."""
    faction_id: str
    turn: int


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(GoalChanged, lambda e: print(e.goal_type))
        bus.emit(GoalChanged(faction_id="f1", goal_type=GoalType.WEALTH_OF_WORLDS))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._handlers.get(type(event), []):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
