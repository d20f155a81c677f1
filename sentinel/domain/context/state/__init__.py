# Session state = everything needed to resume a conversation with the operator:

# The ordered transcript of turns (system prompt, operator messages, model replies,
# command output fed back as operator context)

# The host the conversation is bound to

# Whether a proposed command is waiting for the operator to run or skip it

from .session_store import SessionStore

__all__ = ["SessionStore"]
