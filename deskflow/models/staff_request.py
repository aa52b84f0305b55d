import uuid

from sqlalchemy import Column, DateTime, Text, Uuid

from deskflow.database import Base


class StaffRequest(Base):
    __tablename__ = "staff_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_type = Column(Text, nullable=False)  # alta, baja
    entity_type = Column(Text, nullable=False, default="usuario")
    entity_name = Column(Text, nullable=False)
    user_role = Column(Text, nullable=False)
    platform = Column(Text, nullable=False)
    notes = Column(Text)
    status = Column(Text, nullable=False, default="pending")  # pending, approved, done, rejected
    requested_by = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True))
