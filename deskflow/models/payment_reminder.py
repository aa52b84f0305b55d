import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Text, Uuid

from deskflow.database import Base


class PaymentReminder(Base):
    __tablename__ = "payment_reminders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    description = Column(Text)
    phone = Column(Text, nullable=False)
    amount = Column(Float)
    due_date = Column(DateTime(timezone=True), nullable=False)
    reminder_days = Column(JSON, nullable=False, default=list)  # e.g. [7, 3, 1]
    is_monthly = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_sent = Column(DateTime(timezone=True))
    next_reminder = Column(DateTime(timezone=True))
