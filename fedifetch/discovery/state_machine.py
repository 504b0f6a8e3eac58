"""State machine for one actor discovery."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class DiscoveryState(str, Enum):
    """State of a handle during discovery.

    - NORMALIZING: Validating and normalizing the handle
    - CACHE_CHECK: Looking the handle up in the actor cache
    - DISCOVERY_LOOKUP: Fetching the WebFinger document
    - EXTRACTING_ACTOR_LINK: Selecting the ActivityPub ``self`` link
    - FETCHING_ACTOR: Fetching the actor document
    - DONE: Actor resolved
    - FAILED: Discovery failed
    """

    NORMALIZING = "NORMALIZING"
    CACHE_CHECK = "CACHE_CHECK"
    DISCOVERY_LOOKUP = "DISCOVERY_LOOKUP"
    EXTRACTING_ACTOR_LINK = "EXTRACTING_ACTOR_LINK"
    FETCHING_ACTOR = "FETCHING_ACTOR"
    DONE = "DONE"
    FAILED = "FAILED"


_VALID_TRANSITIONS: dict[DiscoveryState, set[DiscoveryState]] = {
    DiscoveryState.NORMALIZING: {
        DiscoveryState.CACHE_CHECK,
        DiscoveryState.FAILED,
    },
    # A cache hit completes immediately
    DiscoveryState.CACHE_CHECK: {
        DiscoveryState.DISCOVERY_LOOKUP,
        DiscoveryState.DONE,
        DiscoveryState.FAILED,
    },
    DiscoveryState.DISCOVERY_LOOKUP: {
        DiscoveryState.EXTRACTING_ACTOR_LINK,
        DiscoveryState.FAILED,
    },
    DiscoveryState.EXTRACTING_ACTOR_LINK: {
        DiscoveryState.FETCHING_ACTOR,
        DiscoveryState.FAILED,
    },
    DiscoveryState.FETCHING_ACTOR: {DiscoveryState.DONE, DiscoveryState.FAILED},
    DiscoveryState.DONE: set(),
    DiscoveryState.FAILED: set(),
}


class DiscoveryStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        handle: str,
        from_state: DiscoveryState,
        to_state: DiscoveryState,
    ) -> None:
        self.handle = handle
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal discovery transition for '{handle}': "
            f"{from_state.value} -> {to_state.value}"
        )


class DiscoveryStateMachine:
    """Tracks the progress of one discovery and rejects illegal moves."""

    def __init__(self, handle: str) -> None:
        """Initialize the state machine.

        Args:
            handle: Handle being discovered, as given by the caller.
        """
        self._handle = handle
        self._state = DiscoveryState.NORMALIZING
        self._history: list[DiscoveryState] = [self._state]
        self._log = logger.bind(component="discovery", handle=handle)

    @property
    def state(self) -> DiscoveryState:
        """Get the current state."""
        return self._state

    @property
    def history(self) -> list[DiscoveryState]:
        """States visited so far, in order."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in (DiscoveryState.DONE, DiscoveryState.FAILED)

    def can_transition_to(self, target: DiscoveryState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: DiscoveryState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            DiscoveryStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise DiscoveryStateTransitionError(self._handle, self._state, target)

        old_state = self._state
        self._state = target
        self._history.append(target)
        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_cache_check(self) -> None:
        """Transition to CACHE_CHECK."""
        self.transition_to(DiscoveryState.CACHE_CHECK)

    def to_discovery_lookup(self) -> None:
        """Transition to DISCOVERY_LOOKUP."""
        self.transition_to(DiscoveryState.DISCOVERY_LOOKUP)

    def to_extracting_actor_link(self) -> None:
        """Transition to EXTRACTING_ACTOR_LINK."""
        self.transition_to(DiscoveryState.EXTRACTING_ACTOR_LINK)

    def to_fetching_actor(self) -> None:
        """Transition to FETCHING_ACTOR."""
        self.transition_to(DiscoveryState.FETCHING_ACTOR)

    def to_done(self) -> None:
        """Transition to DONE."""
        self.transition_to(DiscoveryState.DONE)

    def to_failed(self) -> None:
        """Transition to FAILED."""
        self.transition_to(DiscoveryState.FAILED)
