from typing import List, Optional

from pydantic import BaseModel


class MessageRequest(BaseModel):
    sender: str
    text: str = ""
    message_id: str
    message_type: str = "text"
    chat_id: Optional[str] = None
    from_me: bool = False
    is_status: bool = False


class MessageResponse(BaseModel):
    handled: bool
    action: str
    reply: Optional[str] = None
    domain: Optional[str] = None
    step: Optional[str] = None
    replies: List[str] = []
    outbound: List[dict] = []
