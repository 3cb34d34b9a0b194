# backend/mindship/crud/users.py

from typing import Optional, Dict, Any, Union

from bson import ObjectId
from bson.errors import InvalidId

from mindship.db.mongo import get_db
from mindship.models.user import UserInDB


def get_users_collection():
    """
    Motor DB 핸들에서 users 컬렉션을 가져옵니다.
    connect_to_mongo() 이후에 db가 세팅되어 있어야 합니다.
    """
    return get_db()["users"]


def _safe_object_id(value: Union[str, ObjectId]) -> Optional[ObjectId]:
    """
    str/ObjectId 입력을 안전하게 ObjectId로 변환합니다.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str):
        value = value.strip()
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def id_filter(value: Union[str, ObjectId]) -> Dict[str, Any]:
    """
    _id 타입이 ObjectId / string 혼재된 상황을 모두 커버하는 필터.
    - ObjectId로 변환 가능하면: ObjectId / string 둘 다 매칭
    - 변환 불가하면: string 매칭
    """
    if isinstance(value, str):
        value = value.strip()

    oid = _safe_object_id(value)

    if isinstance(value, str) and oid is not None:
        return {"$or": [{"_id": oid}, {"_id": value}]}
    if oid is not None:
        return {"_id": oid}
    return {"_id": value}


# ---------- READ ----------

async def get_user_by_id(user_id: Union[str, ObjectId]) -> Optional[UserInDB]:
    user = await get_users_collection().find_one(id_filter(user_id))
    if not user:
        return None
    user["_id"] = str(user["_id"])
    return UserInDB(**user)
