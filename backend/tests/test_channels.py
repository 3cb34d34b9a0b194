import pytest

from conftest import BrokenSubscriber, RecordingSubscriber
from mindship.core.exceptions import PublishError
from mindship.realtime.channels import ChannelHub, channel_name


@pytest.mark.anyio
async def test_publish_fans_out_to_every_listener():
    hub = ChannelHub()
    first, second = RecordingSubscriber(), RecordingSubscriber()
    await hub.subscribe(channel_name("s1"), first)
    await hub.subscribe(channel_name("s1"), second)
    other = RecordingSubscriber()
    await hub.subscribe(channel_name("s2"), other)

    delivered = await hub.publish(channel_name("s1"), "deep_drift_detected", {"message": "hi"})

    assert delivered == 2
    assert first.messages == second.messages == [
        {"type": "broadcast", "event": "deep_drift_detected", "payload": {"message": "hi"}}
    ]
    assert other.messages == []


@pytest.mark.anyio
async def test_publish_without_listeners_is_not_an_error():
    hub = ChannelHub()
    assert await hub.publish(channel_name("nobody"), "deep_drift_detected", {}) == 0


@pytest.mark.anyio
async def test_broken_listener_is_dropped_when_others_succeed():
    hub = ChannelHub()
    good = RecordingSubscriber()
    await hub.subscribe("session:s1", good)
    await hub.subscribe("session:s1", BrokenSubscriber())

    assert await hub.publish("session:s1", "deep_drift_detected", {}) == 1
    assert hub.subscriber_count("session:s1") == 1


@pytest.mark.anyio
async def test_all_listeners_failing_raises_publish_error():
    hub = ChannelHub()
    await hub.subscribe("session:s1", BrokenSubscriber())

    with pytest.raises(PublishError):
        await hub.publish("session:s1", "deep_drift_detected", {})

    assert hub.subscriber_count("session:s1") == 0
    assert hub.channel_count() == 0


@pytest.mark.anyio
async def test_unsubscribe_removes_empty_channels():
    hub = ChannelHub()
    listener = RecordingSubscriber()
    await hub.subscribe("session:s1", listener)
    await hub.unsubscribe("session:s1", listener)
    await hub.unsubscribe("session:unknown", listener)

    assert hub.channel_count() == 0
