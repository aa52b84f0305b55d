import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Text, Uuid

from deskflow.database import Base


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone = Column(Text, nullable=False, unique=True)  # digits only
    name = Column(Text)
    role = Column(Text)  # user, rh, admin, super_admin, levi
    strike_count = Column(Integer, nullable=False, default=0)
    strike_reasons = Column(JSON, nullable=False, default=list)
    bot_paused = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True))
