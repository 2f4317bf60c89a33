from sqlalchemy import Column, String, Integer, ForeignKey, Index, UniqueConstraint, CheckConstraint

from .base import TimestampedModel


class WeeklyTaskCompletionDB(TimestampedModel):
    """Per-week status of a recurring task."""
    __tablename__ = "weekly_task_completions"

    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), nullable=False)
    week_number = Column(Integer, nullable=False)
    # ISO year the row was last instanced for; the unique key leaves the year out
    week_year = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="todo")
    progress_current = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        # One completion record per task per week per user; every write upserts on this key
        UniqueConstraint("task_id", "user_id", "week_number", name="uq_weekly_completion_task_user_week"),
        CheckConstraint("status IN ('todo', 'in_progress', 'done', 'blocked')", name="ck_weekly_completion_status"),
        Index("idx_weekly_completions_task_week", "task_id", "week_number"),
        Index("idx_weekly_completions_user", "user_id"),
    )
