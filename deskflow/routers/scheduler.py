from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from deskflow.config import settings
from deskflow.database import get_db
from deskflow.engine import ConversationEngine, get_engine
from deskflow.schemas.scheduler import SweepResponse
from deskflow.services.reminder_service import run_sweeps
from deskflow.services.transport import RecordingTransport

router = APIRouter(prefix="/scheduler")


@router.post("/run", response_model=SweepResponse)
def run_scheduler(db: Session = Depends(get_db), engine: ConversationEngine = Depends(get_engine)):
    """Run the periodic jobs now and hand back anything they queued."""
    results = run_sweeps(db, engine.sessions, engine.transport, settings.session_ttl_minutes)
    outbound = []
    if isinstance(engine.transport, RecordingTransport):
        outbound = [{"recipient": to, "content": body} for to, body in engine.transport.drain_outbox()]
    return SweepResponse(success=True, outbound=outbound, **results)
