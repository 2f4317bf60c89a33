from sqlalchemy import (
    Column, String, Boolean, Integer, Text, Date, DateTime, ForeignKey, Index, CheckConstraint, JSON, func
)
from sqlalchemy.orm import relationship

from .base import Base, TimestampedModel, new_id, utcnow


class TaskDB(TimestampedModel):
    __tablename__ = "tasks"

    user_id = Column(String(36), nullable=False)
    category = Column(String(32), nullable=False)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="todo")
    priority = Column(String(20), nullable=False, default="medium")
    due_date = Column(Date, nullable=True)

    # Recurrence: recurring tasks are templates, per-week state lives in weekly_task_completions
    is_recurring = Column(Boolean, nullable=False, default=False)
    original_week_number = Column(Integer, nullable=True)
    recurrence_weeks = Column(Integer, nullable=True)  # NULL = every week

    progress_current = Column(Integer, nullable=False, default=0)
    progress_total = Column(Integer, nullable=True)
    auto_progress = Column(Boolean, nullable=False, default=False)
    weighted_progress = Column(Boolean, nullable=False, default=False)

    week_number = Column(Integer, nullable=False)
    week_year = Column(Integer, nullable=False)

    # Relationships
    subtasks = relationship(
        "SubtaskDB",
        back_populates="task",
        order_by="SubtaskDB.position",
        cascade="all, delete-orphan",
    )
    updates = relationship(
        "TaskUpdateDB",
        back_populates="task",
        order_by="TaskUpdateDB.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("category IN ('life_admin', 'work', 'weekly_recurring')", name="ck_tasks_category"),
        CheckConstraint("status IN ('todo', 'in_progress', 'done', 'blocked')", name="ck_tasks_status"),
        CheckConstraint("progress_current >= 0", name="ck_tasks_progress_current"),
        CheckConstraint(
            "recurrence_weeks IS NULL OR (recurrence_weeks >= 1 AND recurrence_weeks <= 15)",
            name="ck_tasks_recurrence_weeks",
        ),
        Index("idx_tasks_user_week", "user_id", "week_year", "week_number"),
        Index("idx_tasks_user_recurring", "user_id", "is_recurring"),
    )


class SubtaskDB(TimestampedModel):
    __tablename__ = "subtasks"

    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(500), nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    weight = Column(Integer, nullable=False, default=1)
    position = Column(Integer, nullable=False, default=0)

    task = relationship("TaskDB", back_populates="subtasks")

    __table_args__ = (
        CheckConstraint("weight >= 1 AND weight <= 10", name="ck_subtasks_weight"),
        Index("idx_subtasks_task_id", "task_id"),
    )


class TaskUpdateDB(Base):
    """Append-only progress log; rows are never updated."""
    __tablename__ = "task_updates"

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    update_text = Column(Text, nullable=False)
    progress_value = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    task = relationship("TaskDB", back_populates="updates")

    __table_args__ = (
        Index("idx_task_updates_task_id", "task_id"),
    )


class TaskActivityDB(Base):
    """Audit trail of lifecycle events (status changes, moves, copies)."""
    __tablename__ = "task_activities"

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), nullable=False)
    activity_type = Column(String(50), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_task_activities_task_id", "task_id"),
        Index("idx_task_activities_user_created", "user_id", "created_at"),
    )
