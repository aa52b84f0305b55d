from typing import List

from pydantic import BaseModel


class SweepResponse(BaseModel):
    success: bool
    expired_sessions: List[str]
    reminders_sent: List[str]
    reminders_failed: List[str]
    outbound: List[dict] = []
