"""
httpntlm State Machine Base

Abstract base class for table-driven state machines with:
- Invariant checking at each transition
- Complete transition history for diagnostics
- JSON trace export

Design Principles:
1. Pure context updaters (no I/O in handlers)
2. All state changes through explicit transitions
3. Invariant checking before committing state changes
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Tuple,
    TypeVar,
)
import json
import structlog

import attrs
from returns.result import Failure, Result, Success

from httpntlm.core.exceptions import InvariantViolation

logger = structlog.get_logger()


S = TypeVar("S", bound=Enum)  # State type
E = TypeVar("E")  # Event type
C = TypeVar("C")  # Context type


@attrs.define(frozen=True, slots=True)
class Transition(Generic[S, E]):
    """Immutable record of a state transition."""

    from_state: S
    event_type: str
    to_state: S
    timestamp: datetime
    context_snapshot: Dict[str, Any] = attrs.Factory(dict)
    event_data: Dict[str, Any] = attrs.Factory(dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "from_state": self.from_state.name,
            "event_type": self.event_type,
            "to_state": self.to_state.name,
            "timestamp": self.timestamp.isoformat(),
            "context_snapshot": self.context_snapshot,
            "event_data": self.event_data,
        }


InvariantFn = Callable[[S, Any], bool]

# (next_state, context_updater)
TransitionEntry = Tuple[S, Callable[[Any, Any], Any]]


@attrs.define
class StateMachineBase(ABC, Generic[S, E, C]):
    """
    Base state machine driven by a transition table.

    Usage:
        class MyStateMachine(StateMachineBase[MyState, Any, MyContext]):
            def initial_state(self) -> MyState:
                return MyState.INITIAL

            def transition_table(self) -> Dict[Tuple[MyState, type], TransitionEntry]:
                return {
                    (MyState.INITIAL, StartEvent): (
                        MyState.STARTED,
                        self._handle_start
                    ),
                }

            @staticmethod
            def _handle_start(event: StartEvent, ctx: MyContext) -> MyContext:
                return attrs.evolve(ctx, started=True)
    """

    _state: S = attrs.field(alias="_state")
    _context: C = attrs.field(alias="_context")
    _history: List[Transition[S, E]] = attrs.field(factory=list, alias="_history")
    _invariants: List[Tuple[str, InvariantFn]] = attrs.field(factory=list, alias="_invariants")
    _logger: Any = attrs.field(factory=lambda: structlog.get_logger(), alias="_logger")

    @abstractmethod
    def initial_state(self) -> S:
        """Return the initial state for this state machine."""
        ...

    @abstractmethod
    def transition_table(
        self,
    ) -> Dict[Tuple[S, type], TransitionEntry]:
        """
        Return the transition table.

        Maps (current_state, event_type) to (next_state, context_updater).
        The context_updater computes the new context from the event and
        the current context.
        """
        ...

    @property
    def state(self) -> S:
        """Current state (read-only)."""
        return self._state

    @property
    def context(self) -> C:
        """Current context (read-only)."""
        return self._context

    def process_event(self, event: E) -> Result[S, str]:
        """
        Process an event and transition to the next state.

        Returns:
            Success(new_state) if transition succeeded
            Failure(error_message) if transition failed

        Raises:
            InvariantViolation: If any invariant fails after transition
        """
        event_type = type(event)
        key = (self._state, event_type)

        table = self.transition_table()
        if key not in table:
            error_msg = f"No transition for state {self._state.name} with event {event_type.__name__}"
            self._logger.warning(
                "invalid_transition",
                current_state=self._state.name,
                event_type=event_type.__name__,
            )
            return Failure(error_msg)

        next_state, context_updater = table[key]

        try:
            new_context = context_updater(event, self._context)
        except Exception as e:
            error_msg = f"Context update failed: {e}"
            self._logger.error(
                "context_update_failed",
                error=str(e),
                current_state=self._state.name,
                event_type=event_type.__name__,
            )
            return Failure(error_msg)

        for name, invariant in self._invariants:
            if not invariant(next_state, new_context):
                self._logger.error(
                    "invariant_violated",
                    invariant=name,
                    from_state=self._state.name,
                    to_state=next_state.name,
                )
                raise InvariantViolation(f"Invariant '{name}' violated")

        transition = Transition(
            from_state=self._state,
            event_type=event_type.__name__,
            to_state=next_state,
            timestamp=datetime.now(timezone.utc),
            context_snapshot=self._snapshot(new_context),
            event_data=self._snapshot(event) or {"type": event_type.__name__},
        )
        self._history.append(transition)

        self._logger.debug(
            "state_transition",
            from_state=self._state.name,
            to_state=next_state.name,
            event_type=event_type.__name__,
        )

        self._state = next_state
        self._context = new_context

        return Success(next_state)

    def add_invariant(self, name: str, invariant: InvariantFn) -> None:
        """
        Register an invariant to be checked at each transition.

        Args:
            name: Human-readable name for error messages
            invariant: Function (state, context) -> bool
        """
        self._invariants.append((name, invariant))

    def get_trace(self) -> List[Transition[S, E]]:
        """Return a copy of the transition history."""
        return list(self._history)

    def export_trace_json(self) -> str:
        """Export trace as JSON string."""
        return json.dumps(
            {
                "initial_state": self.initial_state().name,
                "final_state": self._state.name,
                "transitions": [t.to_dict() for t in self._history],
            },
            indent=2,
        )

    def _snapshot(self, value: Any) -> Dict[str, Any]:
        """Create a serializable snapshot of an attrs value."""
        if attrs.has(type(value)):
            return attrs.asdict(
                value,
                recurse=False,
                filter=lambda attr, _: not attr.name.startswith("_"),
                value_serializer=self._serialize_value,
            )
        return {}

    @staticmethod
    def _serialize_value(
        inst: type, field: attrs.Attribute, value: Any  # noqa: ARG004
    ) -> Any:
        """Serialize values for JSON export."""
        if isinstance(value, bytes):
            return f"<bytes:{len(value)}>"
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, BaseException):
            return f"{type(value).__name__}: {value}"
        if value is not None and not isinstance(value, (str, int, float, bool)):
            return f"<{type(value).__name__}>"
        return value
