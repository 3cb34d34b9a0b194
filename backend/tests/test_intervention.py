import pytest

from conftest import BrokenSubscriber, FakeGenaiClient, RecordingSubscriber, seed_events, seed_session
from mindship.core.exceptions import PublishError, SessionNotFound, SpeechServiceError
from mindship.crud import interventions as intervention_crud
from mindship.crud import sessions as session_crud
from mindship.realtime.channels import ChannelHub, channel_name
from mindship.services.conversation import ConversationService
from mindship.services.intervention import DEEP_DRIFT_EVENT, InterventionDispatcher, fallback_message
from mindship.services.speech import SpeechResult


class FakeSpeech:
    def __init__(self, error=None):
        self.error = error
        self.texts = []

    async def synthesize(self, text, voice_settings=None):
        self.texts.append(text)
        if self.error:
            raise self.error
        return SpeechResult(audio_data="SUQzBAAAAAAA")


def make_dispatcher(chunks=None, conversation_error=None, speech_error=None, hub=None):
    client = FakeGenaiClient(chunks=chunks or [], error=conversation_error)
    conversation = ConversationService(client=client, timeout=1)
    speech = FakeSpeech(error=speech_error)
    hub = hub or ChannelHub()
    return InterventionDispatcher(conversation, speech, hub), client, speech, hub


@pytest.mark.anyio
async def test_dispatch_publishes_generated_message_with_audio(db):
    session_id = await seed_session(db)
    await seed_events(session_id, [True] * 5)
    dispatcher, client, speech, hub = make_dispatcher(chunks=["Ahoy! ", "Back to chapter 3."])
    listener = RecordingSubscriber()
    await hub.subscribe(channel_name(session_id), listener)

    result = await dispatcher.dispatch(session_id, "test_user_123", 5)

    assert result.intervention_message == "Ahoy! Back to chapter 3."
    assert result.used_fallback_message is False
    assert result.tts_success is True
    assert result.audio_url == "data:audio/mpeg;base64,SUQzBAAAAAAA"
    assert result.delivered_to == 1
    assert speech.texts == ["Ahoy! Back to chapter 3."]

    [message] = listener.messages
    assert message["event"] == DEEP_DRIFT_EVENT
    assert message["payload"]["consecutive_drifts"] == 5
    assert message["payload"]["message"] == "Ahoy! Back to chapter 3."
    assert message["payload"]["tts_success"] is True

    # 대화 컨텍스트에 최근 드리프트 기록과 목표가 들어감
    turn = client.models.calls[0]["contents"][-1]["parts"][0]["text"]
    assert "Ship the thesis draft" in turn
    assert "Watching videos (doing: YouTube)" in turn
    assert "drifting for 5 minutes" in turn

    [record] = await intervention_crud.get_session_interventions(session_id)
    assert record.delivered is True
    assert record.context["task_title"] == "Write chapter 3"
    assert record.context["consecutive_drifts"] == 5
    assert record.messages[1].content == "Ahoy! Back to chapter 3."

    session = await session_crud.get_session(session_id)
    assert session.conversation_id == result.conversation_id


@pytest.mark.anyio
async def test_conversation_failure_uses_fallback_template(db):
    session_id = await seed_session(db)
    dispatcher, _, speech, _ = make_dispatcher(conversation_error=RuntimeError("upstream 500"))

    result = await dispatcher.dispatch(session_id, "test_user_123", 7)

    assert result.used_fallback_message is True
    assert result.intervention_message == fallback_message(7, "Write chapter 3")
    assert "7 minutes" in result.intervention_message
    assert speech.texts == [result.intervention_message]


@pytest.mark.anyio
async def test_empty_conversation_reply_uses_fallback_template(db):
    session_id = await seed_session(db)
    dispatcher, _, _, _ = make_dispatcher(chunks=["", "   "])

    result = await dispatcher.dispatch(session_id, "test_user_123", 5)

    assert result.used_fallback_message is True


@pytest.mark.anyio
async def test_speech_failure_publishes_text_only(db):
    session_id = await seed_session(db)
    hub = ChannelHub()
    listener = RecordingSubscriber()
    await hub.subscribe(channel_name(session_id), listener)
    dispatcher, _, _, _ = make_dispatcher(
        chunks=["Steer back."], speech_error=SpeechServiceError("quota exceeded"), hub=hub
    )

    result = await dispatcher.dispatch(session_id, "test_user_123", 5)

    assert result.tts_success is False
    assert result.tts_error == "quota exceeded"
    payload = listener.messages[0]["payload"]
    assert payload["message"] == "Steer back."
    assert payload["audio_data"] is None
    assert payload["tts_success"] is False


@pytest.mark.anyio
async def test_publish_failure_propagates_and_records_nothing(db):
    session_id = await seed_session(db)
    hub = ChannelHub()
    await hub.subscribe(channel_name(session_id), BrokenSubscriber())
    dispatcher, _, _, _ = make_dispatcher(chunks=["Steer back."], hub=hub)

    with pytest.raises(PublishError):
        await dispatcher.dispatch(session_id, "test_user_123", 5)

    assert await intervention_crud.get_session_interventions(session_id) == []


@pytest.mark.anyio
async def test_test_mode_does_not_record(db):
    session_id = await seed_session(db)
    dispatcher, _, _, _ = make_dispatcher(chunks=["Practice run."])

    result = await dispatcher.dispatch(session_id, "test_user_123", 5, test_mode=True)

    assert result.test_mode is True
    assert result.delivered_to == 0
    assert await intervention_crud.get_session_interventions(session_id) == []


@pytest.mark.anyio
async def test_previous_interventions_are_sent_as_history(db):
    session_id = await seed_session(db)
    dispatcher, client, _, _ = make_dispatcher(chunks=["First nudge."])
    first = await dispatcher.dispatch(session_id, "test_user_123", 5)

    client.models.chunks = ["Second nudge."]
    second = await dispatcher.dispatch(session_id, "test_user_123", 6)

    assert second.conversation_id == first.conversation_id
    contents = client.models.calls[1]["contents"]
    assert [c["role"] for c in contents] == ["user", "model", "user"]
    assert contents[1]["parts"][0]["text"] == "First nudge."


@pytest.mark.anyio
async def test_unknown_session_is_rejected(db):
    dispatcher, _, _, _ = make_dispatcher(chunks=["x"])

    with pytest.raises(SessionNotFound):
        await dispatcher.dispatch("missing", "test_user_123", 5)


@pytest.mark.anyio
async def test_record_marks_undelivered_when_nobody_is_listening(db):
    session_id = await seed_session(db)
    dispatcher, _, _, _ = make_dispatcher(chunks=["Anyone there?"])

    result = await dispatcher.dispatch(session_id, "test_user_123", 5)

    assert result.delivered_to == 0
    [record] = await intervention_crud.get_session_interventions(session_id)
    assert record.delivered is False
    assert record.tts_success is True
