# backend/mindship/crud/tasks.py
from typing import Optional

from mindship.crud.users import id_filter
from mindship.db.mongo import get_db
from mindship.models.task import TaskInDB


def get_tasks_collection():
    return get_db()["tasks"]


# READ ONE
async def get_task(task_id: Optional[str]) -> Optional[TaskInDB]:
    if not task_id:
        return None
    doc = await get_tasks_collection().find_one(id_filter(task_id))
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    # 예전 문서는 title 대신 name 필드를 씀
    doc.setdefault("title", doc.get("name") or "")
    return TaskInDB(**doc)
