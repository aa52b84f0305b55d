import uuid

from sqlalchemy import JSON, Column, DateTime, Text, Uuid

from deskflow.database import Base


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ticket_number = Column(Text, nullable=False, unique=True)  # TKT-000001
    sender = Column(Text, nullable=False)
    branch = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(Text, nullable=False, default="medium")  # low, medium, high, urgent
    status = Column(Text, nullable=False, default="open")  # open, in_progress, resolved, closed
    comments = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True))
