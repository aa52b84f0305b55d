from deskflow.schemas.message import MessageRequest, MessageResponse
from deskflow.schemas.scheduler import SweepResponse

__all__ = ["MessageRequest", "MessageResponse", "SweepResponse"]
