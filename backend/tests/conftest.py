import asyncio
import base64
import json
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import List, Optional

import pytest

from mindship.crud import drift_events as event_crud
from mindship.crud import sessions as session_crud
from mindship.db import mongo
from mongo_double import async_mongo_database

TEST_USER_ID = "test_user_123"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    database = async_mongo_database(f"mindship_test_{uuid.uuid4().hex}")
    mongo.db = database
    yield database
    mongo.db = None


def image_b64(size: int, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(b"\x89" * size).decode("ascii")


async def seed_session(
    database,
    user_id: str = TEST_USER_ID,
    state: str = "active",
    goal: Optional[str] = "Ship the thesis draft",
    task_title: Optional[str] = "Write chapter 3",
) -> str:
    task_id = None
    if goal is not None:
        await database["users"].update_one(
            {"_id": user_id}, {"$set": {"guiding_star": goal}}, upsert=True
        )
    if task_title is not None:
        task_id = str(uuid.uuid4())
        await database["tasks"].insert_one(
            {"_id": task_id, "user_id": user_id, "title": task_title, "description": "Methods section"}
        )

    session_id = str(uuid.uuid4())
    await database["sessions"].insert_one(
        {
            "_id": session_id,
            "user_id": user_id,
            "task_id": task_id,
            "state": state,
            "started_at": datetime.now(timezone.utc),
            "ended_at": None,
            "total_focus_seconds": 0,
            "total_drift_seconds": 0,
            "drift_count": 0,
            "event_seq": 0,
            "conversation_id": None,
        }
    )
    return session_id


async def seed_events(session_id: str, pattern: List[bool], user_id: str = TEST_USER_ID):
    """
    pattern 은 오래된 것부터 순서대로 (True = drifting). 생성된 이벤트 목록을 같은 순서로 반환.
    """
    created = []
    for is_drifting in pattern:
        seq = await session_crud.next_event_seq(session_id)
        created.append(
            await event_crud.create_drift_event(
                session_id=session_id,
                user_id=user_id,
                seq=seq,
                is_drifting=is_drifting,
                drift_reason="Watching videos" if is_drifting else "Editing document",
                actual_task="YouTube" if is_drifting else "Writing",
            )
        )
    return created


# --- 외부 서비스 가짜 구현 ---

class FakeModels:
    def __init__(self, response=None, error: Optional[Exception] = None, delay: float = 0.0, chunks=None):
        self.response = response
        self.error = error
        self.delay = delay
        self.chunks = chunks or []
        self.calls = []

    async def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response

    async def generate_content_stream(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error

        async def stream():
            for text in self.chunks:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield SimpleNamespace(text=text)

        return stream()


class FakeGenaiClient:
    def __init__(self, **kwargs):
        self.models = FakeModels(**kwargs)
        self.aio = SimpleNamespace(models=self.models)


def classifier_response(**fields):
    return SimpleNamespace(parsed=None, text=json.dumps(fields))


class FakeDispatcher:
    def __init__(self, error: Optional[Exception] = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.calls = []

    async def dispatch(self, session_id, user_id, consecutive_drifts, test_mode=False):
        self.calls.append((session_id, user_id, consecutive_drifts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return None


class RecordingSubscriber:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)


class BrokenSubscriber:
    async def send_json(self, data):
        raise ConnectionError("socket closed")
