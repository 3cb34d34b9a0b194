import asyncio

import pytest

from conftest import FakeGenaiClient, classifier_response, image_b64, seed_session
from mindship.core.exceptions import NoSensorData, SessionEnded, SessionNotFound
from mindship.crud import drift_events as event_crud
from mindship.crud import sessions as session_crud
from mindship.services.classifier import ClassifierGateway
from mindship.services.heartbeat import HeartbeatProcessor

MiB = 1024 * 1024

DRIFTING = dict(is_drifting=True, actual_current_task="YouTube", reasons="Video site in focus")
FOCUSED = dict(is_drifting=False, actual_current_task="Writing", reasons="Editor in focus")


def make_processor(**client_kwargs) -> HeartbeatProcessor:
    gateway = ClassifierGateway(client=FakeGenaiClient(**client_kwargs), timeout=1)
    return HeartbeatProcessor(gateway, interval_seconds=30)


class ScriptedModels:
    """응답을 순서대로 돌려주는 분류기"""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_content(self, model, contents, config=None):
        self.calls.append(contents)
        return classifier_response(**self.responses.pop(0))


@pytest.mark.anyio
async def test_drifting_tick_records_event_and_counters(db):
    session_id = await seed_session(db)
    processor = make_processor(response=classifier_response(**DRIFTING, user_mood="bored"))

    result = await processor.process(session_id, camera_image=image_b64(100))

    assert result.is_drifting is True
    assert result.reason == "Video site in focus"
    assert result.user_mood == "bored"
    assert result.message == "Drift detected - monitoring continues"

    events = await event_crud.get_recent_events(session_id)
    assert len(events) == 1
    assert events[0].id == result.event_id
    assert events[0].intervention_triggered is False
    assert events[0].seq == 1

    session = await session_crud.get_session(session_id)
    assert session.drift_count == 1
    assert session.total_drift_seconds == 30
    assert session.total_focus_seconds == 0
    assert session.state == "active"


@pytest.mark.anyio
async def test_drift_count_increments_only_when_entering_a_streak(db):
    from types import SimpleNamespace

    session_id = await seed_session(db)
    models = ScriptedModels([DRIFTING, DRIFTING, FOCUSED, DRIFTING])
    gateway = ClassifierGateway(client=SimpleNamespace(aio=SimpleNamespace(models=models)))
    processor = HeartbeatProcessor(gateway, interval_seconds=30)

    for _ in range(4):
        await processor.process(session_id, screen_image=image_b64(50))

    session = await session_crud.get_session(session_id)
    assert session.drift_count == 2
    assert session.total_drift_seconds == 90
    assert session.total_focus_seconds == 30
    assert session.state == "active"

    seqs = [e.seq for e in await event_crud.get_recent_events(session_id, limit=10)]
    assert seqs == [4, 3, 2, 1]


@pytest.mark.anyio
async def test_continuing_streak_does_not_count_a_new_drift(db):
    session_id = await seed_session(db)
    await db["sessions"].update_one({"_id": session_id}, {"$set": {"last_is_drifting": True}})
    processor = make_processor(response=classifier_response(**DRIFTING))

    await processor.process(session_id, camera_image=image_b64(10))

    session = await session_crud.get_session(session_id)
    assert session.drift_count == 0
    assert session.total_drift_seconds == 30


@pytest.mark.anyio
async def test_concurrent_drifting_heartbeats_enter_one_streak(db):
    session_id = await seed_session(db)
    processor = make_processor(response=classifier_response(**DRIFTING), delay=0.01)

    await asyncio.gather(
        processor.process(session_id, camera_image=image_b64(10)),
        processor.process(session_id, screen_image=image_b64(10)),
    )

    session = await session_crud.get_session(session_id)
    assert session.drift_count == 1
    assert session.total_drift_seconds == 60
    seqs = sorted(e.seq for e in await event_crud.get_recent_events(session_id, limit=10))
    assert seqs == [1, 2]


@pytest.mark.anyio
async def test_unknown_session_is_rejected(db):
    processor = make_processor(response=classifier_response(**FOCUSED))

    with pytest.raises(SessionNotFound):
        await processor.process("missing-session", camera_image=image_b64(10))


@pytest.mark.anyio
async def test_someone_elses_session_is_not_found(db):
    session_id = await seed_session(db, user_id="owner")
    processor = make_processor(response=classifier_response(**FOCUSED))

    with pytest.raises(SessionNotFound):
        await processor.process(session_id, camera_image=image_b64(10), user_id="intruder")


@pytest.mark.anyio
async def test_missing_images_mutate_nothing(db):
    session_id = await seed_session(db)
    client = FakeGenaiClient(response=classifier_response(**FOCUSED))
    processor = HeartbeatProcessor(ClassifierGateway(client=client))

    with pytest.raises(NoSensorData):
        await processor.process(session_id, camera_image=None, screen_image="  ")

    assert await event_crud.get_recent_events(session_id) == []
    session = await session_crud.get_session(session_id)
    assert session.total_focus_seconds == 0
    assert client.models.calls == []


@pytest.mark.anyio
async def test_ended_session_keeps_counters_frozen(db):
    session_id = await seed_session(db, state="ended")
    processor = make_processor(response=classifier_response(**DRIFTING))

    with pytest.raises(SessionEnded):
        await processor.process(session_id, camera_image=image_b64(10))

    assert await event_crud.get_recent_events(session_id) == []


@pytest.mark.anyio
async def test_only_oversized_images_store_no_media_verdict(db):
    session_id = await seed_session(db)
    client = FakeGenaiClient(response=classifier_response(**DRIFTING))
    processor = HeartbeatProcessor(ClassifierGateway(client=client, max_image_bytes=3 * MiB))

    result = await processor.process(session_id, camera_image=image_b64(4 * MiB))

    assert result.is_drifting is False
    assert result.reason == "No media available for analysis"
    assert result.message == "Heartbeat received but no media available - assuming focused"
    assert client.models.calls == []

    [event] = await event_crud.get_recent_events(session_id)
    assert event.verdict_source == "no_media"
    assert event.actual_task == "Write chapter 3"


@pytest.mark.anyio
async def test_malformed_classifier_response_stores_fallback(db):
    session_id = await seed_session(db)
    processor = make_processor(response=classifier_response(is_drifting=True, actual_current_task="Gaming"))

    result = await processor.process(session_id, camera_image=image_b64(10))

    assert result.is_drifting is False
    assert result.reason.startswith("Analysis unavailable")
    [event] = await event_crud.get_recent_events(session_id)
    assert event.is_drifting is False
    assert event.verdict_source == "fallback"

    session = await session_crud.get_session(session_id)
    assert session.total_focus_seconds == 30


@pytest.mark.anyio
async def test_classifier_outage_never_raises(db):
    session_id = await seed_session(db)
    processor = make_processor(error=ConnectionError("connection reset"))

    result = await processor.process(session_id, camera_image=image_b64(10))

    assert result.success is True
    assert result.is_drifting is False


@pytest.mark.anyio
async def test_missing_goal_and_task_use_defaults(db):
    session_id = await seed_session(db, user_id="newcomer", goal=None, task_title=None)
    client = FakeGenaiClient(response=classifier_response(**FOCUSED))
    processor = HeartbeatProcessor(ClassifierGateway(client=client))

    await processor.process(session_id, camera_image=image_b64(10))

    prompt = client.models.calls[0]["contents"][0]
    assert "No specific goal set" in prompt
    assert "No specific task" in prompt
