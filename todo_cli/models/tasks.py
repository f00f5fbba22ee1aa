from sqlalchemy import Column, String, Text, SmallInteger, DateTime, ForeignKey, Uuid, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from todo_cli.database import Base


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("status IN (0, 1, 2)", name="status_check"),
        CheckConstraint("priority IN (0, 1, 2)", name="priority_check"),
        Index("idx_tasks_user_status", "user_id", "status"),
        Index("idx_tasks_user_priority", "user_id", "priority"),
    )

    id = Column(Uuid, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SmallInteger, nullable=False, default=0, index=True)  # 0 pending, 1 in progress, 2 completed
    priority = Column(SmallInteger, nullable=False, default=1, index=True)  # 0 low, 1 medium, 2 high
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    owner = relationship("User", back_populates="tasks")
