from fastapi import APIRouter

from weekboard.api.v1.endpoints import tasks, weeks

api_router = APIRouter()

api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(weeks.router, prefix="/weeks", tags=["weeks"])
