import uuid

from sqlalchemy import Column, DateTime, Text, Uuid

from deskflow.database import Base


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    start_time = Column(Text, nullable=False)  # HH:MM
    end_time = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    user_phone = Column(Text, nullable=False)
    user_name = Column(Text)
    status = Column(Text, nullable=False, default="activo")  # activo, cancelado
    created_at = Column(DateTime(timezone=True))
