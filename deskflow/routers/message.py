from fastapi import APIRouter, Depends

from deskflow.engine import ConversationEngine, get_engine
from deskflow.schemas.message import MessageRequest, MessageResponse
from deskflow.services.interfaces import InboundMessage
from deskflow.services.transport import RecordingTransport

router = APIRouter()


@router.post("/message", response_model=MessageResponse)
def handle_message(request: MessageRequest, engine: ConversationEngine = Depends(get_engine)):
    """Run one inbound chat message through the engine."""
    message = InboundMessage(
        sender=request.sender,
        text=request.text,
        message_id=request.message_id,
        message_type=request.message_type,
        chat_id=request.chat_id,
        from_me=request.from_me,
        is_status=request.is_status,
    )
    result = engine.handle_message(message)

    replies = []
    outbound = []
    if isinstance(engine.transport, RecordingTransport):
        replies = engine.transport.pop_replies(message)
        outbound = [{"recipient": to, "content": body} for to, body in engine.transport.drain_outbox()]

    return MessageResponse(
        handled=result.handled,
        action=result.action,
        reply=result.reply,
        domain=result.domain,
        step=result.step,
        replies=replies,
        outbound=outbound,
    )
