import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from deskflow.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="planned")  # planned, in_progress, paused, done
    progress = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True))

    tasks = relationship("Task", back_populates="project")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="todo")  # todo, doing, blocked, done
    progress = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True))

    project = relationship("Project", back_populates="tasks")
