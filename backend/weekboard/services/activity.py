import logging
from typing import Any, Dict, Optional

from ..repositories.ports import WeeklyTaskStore

logger = logging.getLogger(__name__)


async def record_activity(
    store: WeeklyTaskStore,
    task_id: str,
    user_id: str,
    activity_type: str,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Write an audit entry; a failing audit write is logged and does not fail the caller."""
    try:
        await store.log_activity(task_id, user_id, activity_type, old_value, new_value, metadata)
    except Exception as e:
        logger.warning(f"Failed to log {activity_type} activity for task {task_id}: {e}", exc_info=True)
