"""
ntlmcodec State Machine Base

Abstract base class for handshake state machines with:
- A declarative transition table keyed by (state, event type)
- Invariant checking before a transition is committed
- Transition history for debugging and audit logging
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

import attrs
import structlog
from returns.result import Failure, Result, Success

from ntlmcodec.core.exceptions import StateError

logger = structlog.get_logger()


S = TypeVar("S", bound=Enum)  # State type
E = TypeVar("E")  # Event type
C = TypeVar("C")  # Context type


@attrs.define(frozen=True, slots=True)
class Transition(Generic[S]):
    """Immutable record of a state transition."""

    from_state: S
    event_type: str
    to_state: S
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "from_state": self.from_state.name,
            "event_type": self.event_type,
            "to_state": self.to_state.name,
            "timestamp": self.timestamp.isoformat(),
        }


# (state, context) -> holds
InvariantFn = Callable[[Any, Any], bool]

# (next_state, context_updater)
TransitionEntry = Tuple[Any, Callable[[Any, Any], Any]]


@attrs.define
class StateMachineBase(ABC, Generic[S, E, C]):
    """
    Base state machine.

    Subclasses provide the initial state and a transition table mapping
    (current_state, event_type) to (next_state, context_updater). The
    updater is a pure function computing the new context from the event and
    the current context. The machine starts in initial_state() unless a
    _state is passed explicitly.

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
    """

    _context: C = attrs.field(alias="_context")
    _state: S = attrs.field(alias="_state")
    _history: List[Transition[S]] = attrs.field(factory=list, alias="_history")
    _invariants: List[Tuple[str, InvariantFn]] = attrs.field(factory=list, alias="_invariants")

    @_state.default
    def _default_state(self) -> S:
        return self.initial_state()

    @abstractmethod
    def initial_state(self) -> S:
        """Return the initial state for this state machine."""
        ...

    @abstractmethod
    def transition_table(self) -> Dict[Tuple[S, type], TransitionEntry]:
        """Return the transition table."""
        ...

    @property
    def state(self) -> S:
        """Current state (read-only)."""
        return self._state

    @property
    def context(self) -> C:
        """Current context (read-only)."""
        return self._context

    def can_accept(self, event_type: type) -> bool:
        """Return True if event_type has a transition from the current state."""
        return (self._state, event_type) in self.transition_table()

    def process_event(self, event: E) -> Result[S, str]:
        """
        Process an event and transition to the next state.

        Returns:
            Success(new_state) if transition succeeded
            Failure(error_message) if no transition is defined

        Raises:
            StateError: If an invariant fails for the new state
        """
        event_type = type(event)
        key = (self._state, event_type)

        table = self.transition_table()
        if key not in table:
            logger.warning(
                "invalid_transition",
                current_state=self._state.name,
                event_type=event_type.__name__,
            )
            return Failure(
                f"No transition for state {self._state.name} with event {event_type.__name__}"
            )

        next_state, context_updater = table[key]
        new_context = context_updater(event, self._context)

        for name, invariant in self._invariants:
            if not invariant(next_state, new_context):
                logger.error(
                    "invariant_violated",
                    invariant=name,
                    from_state=self._state.name,
                    to_state=next_state.name,
                )
                raise StateError(f"Invariant '{name}' violated")

        self._history.append(
            Transition(
                from_state=self._state,
                event_type=event_type.__name__,
                to_state=next_state,
                timestamp=datetime.now(timezone.utc),
            )
        )

        logger.debug(
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

    def get_trace(self) -> List[Transition[S]]:
        """Return a copy of the transition history."""
        return list(self._history)
