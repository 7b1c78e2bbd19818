"""
DisplayState - State Management for the Panel Driver
====================================================
Tracks where the driver is in the panel's lifecycle and rejects
operations the controller cannot accept in that state.

State Diagram:
    UNINITIALIZED --> RESETTING --> AWAITING_BUSY_AFTER_RESET
        --> INITIALIZING --> READY
    READY --> WRITING --> AWAITING_BUSY_AFTER_UPDATE --> READY
    WRITING / AWAITING_BUSY_AFTER_UPDATE --(failure)--> READY
    READY --> SLEEPING --> CLOSED

Sleep loses the init sequence, so there is no way back from SLEEPING:
waking the panel means opening a new driver (reset + init again).
"""
from ..errors import InvalidStateError


class DisplayState:
    """
    Driver state enumeration.
    """
    UNINITIALIZED = 0               # Bus open, panel not yet reset
    RESETTING = 1                   # RST pulse in progress
    AWAITING_BUSY_AFTER_RESET = 2   # Waiting for the controller to boot
    INITIALIZING = 3                # Register setup sequence
    READY = 4                       # Idle, accepts draw/clear/sleep
    WRITING = 5                     # Streaming into RAM
    AWAITING_BUSY_AFTER_UPDATE = 6  # Refresh waveform running
    SLEEPING = 7                    # Deep sleep, needs reset to wake
    CLOSED = 8                      # Bus released

    _names = {
        0: "UNINITIALIZED",
        1: "RESETTING",
        2: "AWAITING_BUSY_AFTER_RESET",
        3: "INITIALIZING",
        4: "READY",
        5: "WRITING",
        6: "AWAITING_BUSY_AFTER_UPDATE",
        7: "SLEEPING",
        8: "CLOSED",
    }

    @classmethod
    def name(cls, state: int) -> str:
        """Get human-readable state name."""
        return cls._names.get(state, f"UNKNOWN({state})")


class RefreshMode:
    """Waveform used for a display update."""
    FULL = 0     # Mode 1, complete repaint
    PARTIAL = 1  # Mode 2, windowed fast repaint


_TRANSITIONS = {
    DisplayState.UNINITIALIZED: (DisplayState.RESETTING,),
    DisplayState.RESETTING: (DisplayState.AWAITING_BUSY_AFTER_RESET,),
    DisplayState.AWAITING_BUSY_AFTER_RESET: (DisplayState.INITIALIZING,),
    DisplayState.INITIALIZING: (DisplayState.READY,),
    DisplayState.READY: (DisplayState.WRITING, DisplayState.SLEEPING),
    DisplayState.WRITING: (DisplayState.AWAITING_BUSY_AFTER_UPDATE,),
    DisplayState.AWAITING_BUSY_AFTER_UPDATE: (DisplayState.READY,),
    DisplayState.SLEEPING: (),
    DisplayState.CLOSED: (),
}


class DriverState:
    """
    Complete driver state container.

    Attributes:
        state: Current DisplayState
        full_count: Full refreshes completed since init
        partial_count: Partial refreshes since the last full refresh
        window: Active RAM window (x_start, y_start, x_end, y_end) or None
            when the full panel is addressed
    """

    def __init__(self, state: int = DisplayState.UNINITIALIZED):
        self.state = state
        self.full_count = 0
        self.partial_count = 0
        self.window = None

    def advance(self, new_state: int) -> None:
        """
        Move to ``new_state``.

        CLOSED is reachable from any state so resources can always be
        released.

        Raises:
            InvalidStateError: Transition not allowed from the current state
        """
        if new_state == DisplayState.CLOSED or new_state in _TRANSITIONS[self.state]:
            self.state = new_state
            return
        raise InvalidStateError(
            f"cannot go from {DisplayState.name(self.state)} "
            f"to {DisplayState.name(new_state)}"
        )

    def require(self, *states: int) -> None:
        """Raise InvalidStateError unless in one of ``states``."""
        if self.state not in states:
            allowed = ", ".join(DisplayState.name(s) for s in states)
            raise InvalidStateError(
                f"operation needs {allowed}, driver is {DisplayState.name(self.state)}"
            )

    def abort(self) -> None:
        """
        Return to READY after a RAM write or refresh failed.

        The panel contents are undefined but the register setup is
        intact, so the caller may retry the whole operation.
        """
        self.require(DisplayState.WRITING, DisplayState.AWAITING_BUSY_AFTER_UPDATE)
        self.state = DisplayState.READY

    def on_refresh_complete(self, mode: int) -> None:
        """Transition after a refresh finished."""
        self.advance(DisplayState.READY)
        if mode == RefreshMode.FULL:
            self.full_count += 1
            self.partial_count = 0
        else:
            self.partial_count += 1

    @property
    def is_sleeping(self) -> bool:
        return self.state == DisplayState.SLEEPING

    @property
    def is_ready(self) -> bool:
        return self.state == DisplayState.READY

    @property
    def is_closed(self) -> bool:
        return self.state == DisplayState.CLOSED

    def __repr__(self) -> str:
        return (
            f"DriverState("
            f"state={DisplayState.name(self.state)}, "
            f"full={self.full_count}, "
            f"partial={self.partial_count})"
        )
