from .session_engine import (
    SessionEngine, AFFIRMATIVE_LABELS, CANCEL_LABELS, CONTINUATION_PROMPT,
    SKIPPED_TURN, COMMAND_OUTPUT_PREFIX
)

__all__ = [
    "SessionEngine", "AFFIRMATIVE_LABELS", "CANCEL_LABELS", "CONTINUATION_PROMPT",
    "SKIPPED_TURN", "COMMAND_OUTPUT_PREFIX",
]
