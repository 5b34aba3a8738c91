from enum import Enum


class PipelineState(str, Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    BANNED = "banned"
    COMMAND_HANDLED = "command_handled"
    MEDIA_RESOLVED = "media_resolved"
    MODERATED = "moderated"
    REJECTED = "rejected"
    CONTEXT_BUILT = "context_built"
    GENERATED = "generated"
    SUPPRESSED = "suppressed"
    DISPATCHED = "dispatched"
    ERROR = "error"


TERMINAL_STATES = frozenset(
    {
        PipelineState.BANNED,
        PipelineState.COMMAND_HANDLED,
        PipelineState.REJECTED,
        PipelineState.SUPPRESSED,
        PipelineState.DISPATCHED,
        PipelineState.ERROR,
    }
)

VALID_TRANSITIONS = {
    PipelineState.RECEIVED: [PipelineState.CLASSIFIED],
    PipelineState.CLASSIFIED: [
        PipelineState.BANNED,
        PipelineState.COMMAND_HANDLED,
        PipelineState.MEDIA_RESOLVED,
    ],
    PipelineState.MEDIA_RESOLVED: [PipelineState.MODERATED],
    PipelineState.MODERATED: [PipelineState.REJECTED, PipelineState.CONTEXT_BUILT],
    PipelineState.CONTEXT_BUILT: [PipelineState.GENERATED],
    PipelineState.GENERATED: [PipelineState.SUPPRESSED, PipelineState.DISPATCHED],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: PipelineState, to_state: PipelineState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def is_terminal(state: PipelineState) -> bool:
    return state in TERMINAL_STATES


def can_transition(from_state: PipelineState, to_state: PipelineState) -> bool:
    """Check if transition is valid. Any non-terminal state may fail into ERROR."""
    if to_state == PipelineState.ERROR:
        return not is_terminal(from_state)
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: PipelineState, to_state: PipelineState) -> PipelineState:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state
