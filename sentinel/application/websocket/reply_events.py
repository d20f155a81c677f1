from sentinel.domain.models.session_state import EngineReply, ReplyKind
from .schema.events import BaseEvent, MarkdownEvent, ConfirmationEvent, ConfirmationPayload, ErrorEvent


def reply_to_event(conversation_id: str, reply: EngineReply) -> BaseEvent:
    """Render an engine reply as the outbound websocket event"""

    if reply.kind == ReplyKind.CONFIRMATION and reply.confirmation is not None:
        request = reply.confirmation
        return ConfirmationEvent(
            conversation_id=conversation_id,
            payload=ConfirmationPayload(
                prompt=request.prompt,
                command=request.command,
                token=request.token,
                options=list(request.options)
            )
        )

    if reply.kind == ReplyKind.ERROR:
        return ErrorEvent(
            conversation_id=conversation_id,
            payload={"message": reply.text},
            error_code="provider_error"
        )

    return MarkdownEvent(conversation_id=conversation_id, payload=reply.text)
