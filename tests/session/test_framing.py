import asyncio

import pytest

from assistant.errors import ChannelWriteError
from assistant.session.framing import FrameTag, FrameWriter
from tests.utils import FakeSocket


@pytest.mark.asyncio
async def test_frames_carry_single_character_tags(socket):
    writer = FrameWriter(socket)

    await writer.send_content("Hello")
    await writer.send_function_notice("Checking the time...")
    await writer.send_action({"action": "set_timer", "seconds": 60})
    await writer.send_done()
    await writer.send_thread_id("abc")

    assert socket.frames == [
        "cHello",
        "fChecking the time...",
        'a{"action": "set_timer", "seconds": 60}',
        "d",
        "tabc",
    ]


@pytest.mark.asyncio
async def test_concurrent_writers_keep_frames_whole_and_ordered():
    class SlowSocket(FakeSocket):
        async def send_text(self, data: str) -> None:
            # Yield mid-write; without the lock another writer would interleave.
            self.frames.append(data[:1])
            await asyncio.sleep(0)
            self.frames[-1] = data

    socket = SlowSocket()
    writer = FrameWriter(socket)

    await asyncio.gather(*(writer.send(FrameTag.CONTENT, str(i)) for i in range(5)))

    assert socket.frames == [f"c{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_transport_failure_raises_channel_write_error():
    writer = FrameWriter(FakeSocket(fail_after=0))

    with pytest.raises(ChannelWriteError):
        await writer.send_done()


@pytest.mark.asyncio
async def test_close_is_idempotent_and_blocks_later_writes(socket):
    writer = FrameWriter(socket)

    await writer.close_internal_error("boom")
    await writer.close()

    assert socket.closed_with == (1011, "boom")
    assert writer.closed
    with pytest.raises(ChannelWriteError):
        await writer.send_content("late")
