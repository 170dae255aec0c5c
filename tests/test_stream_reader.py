import pytest

from models.planner_errors import StreamInterruptedError
from services.planner.stream_reader import MessageStreamReader


async def _chunks(*parts, error=None):
    for part in parts:
        yield part
    if error is not None:
        raise error


@pytest.mark.asyncio
async def test_reports_accumulated_text_after_each_chunk():
    seen = []
    text = await MessageStreamReader().read_all(_chunks(b"Reduce", b" churn", b" by..."), seen.append)
    assert text == "Reduce churn by..."
    assert seen == ["Reduce", "Reduce churn", "Reduce churn by..."]


@pytest.mark.asyncio
async def test_multibyte_characters_split_across_chunks():
    encoded = "Café growth".encode("utf-8")
    split = encoded.index(b"\xa9")
    seen = []
    text = await MessageStreamReader().read_all(_chunks(encoded[:split], encoded[split:]), seen.append)
    assert text == "Café growth"
    assert seen == ["Caf", "Café growth"]


@pytest.mark.asyncio
async def test_failure_keeps_partial_text():
    seen = []
    with pytest.raises(StreamInterruptedError) as excinfo:
        await MessageStreamReader().read_all(_chunks(b"Reduce", b" churn", error=ConnectionResetError("reset")), seen.append)
    assert excinfo.value.partial_text == "Reduce churn"
    assert isinstance(excinfo.value.cause, ConnectionResetError)
    assert seen[-1] == "Reduce churn"


@pytest.mark.asyncio
async def test_empty_stream_returns_empty_text():
    seen = []
    assert await MessageStreamReader().read_all(_chunks(), seen.append) == ""
    assert seen == []
