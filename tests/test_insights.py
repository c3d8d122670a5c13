"""Tests for streamed insights over NDJSON."""
import json

import httpx
import pytest

from talentdesk.errors import AnalysisFailed
from talentdesk.insights import build_insight_prompt, collect_insights, parse_fragment, stream_insights
from talentdesk.models import Job

OLLAMA = "http://ollama.test"


def _ndjson(*objects) -> bytes:
    return b"".join(json.dumps(o).encode() + b"\n" for o in objects)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class _BrokenStream(httpx.AsyncByteStream):
    """Delivers one fragment, then the connection drops."""

    async def __aiter__(self):
        yield b'{"response": "Par"}\n'
        raise httpx.ReadError("connection reset")


async def _drain(client, **kwargs):
    return await collect_insights(stream_insights("Skills: Go", base_url=OLLAMA, client=client, **kwargs))


class TestParseFragment:
    def test_text_fragment(self):
        assert parse_fragment('{"response": "Hel", "done": false}') == "Hel"

    @pytest.mark.parametrize("line", ["{not json", "[1, 2]", '{"done": true}', '{"response": 3}'])
    def test_unusable_lines(self, line):
        assert parse_fragment(line) is None


class TestStreamInsights:
    @pytest.mark.asyncio
    async def test_fragments_concatenate_in_arrival_order(self):
        """Malformed lines contribute nothing and do not reorder the rest."""
        body = (
            _ndjson({"response": "Hel"})
            + b"{broken\n"
            + b"\n"
            + _ndjson({"response": "lo "}, {"done": False}, {"response": "world"}, {"response": "", "done": True})
        )
        async with _client(lambda request: httpx.Response(200, content=body)) as client:
            buffer = await _drain(client)
        assert buffer.text == "Hello world"
        assert buffer.fragments == 3

    @pytest.mark.asyncio
    async def test_request_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=_ndjson({"response": "ok"}))

        job = Job(id="job-1", title="Backend Engineer", description="", requirements="Python")
        async with _client(handler) as client:
            fragments = stream_insights(
                "x" * 5000, job=job, base_url=OLLAMA + "/", model="llama3.2:latest", max_chars=100, client=client
            )
            await collect_insights(fragments)

        assert seen["url"] == f"{OLLAMA}/api/generate"
        assert seen["body"]["model"] == "llama3.2:latest"
        assert seen["body"]["stream"] is True
        assert "x" * 100 in seen["body"]["prompt"]
        assert "x" * 101 not in seen["body"]["prompt"]
        assert "Backend Engineer" in seen["body"]["prompt"]

    @pytest.mark.asyncio
    async def test_error_status_fails_without_partial_text(self):
        async with _client(lambda request: httpx.Response(500, text="model not loaded")) as client:
            with pytest.raises(AnalysisFailed) as exc_info:
                await _drain(client)
        assert exc_info.value.reason == "HTTP error! status: 500"
        assert exc_info.value.partial == ""

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        async with _client(handler) as client:
            with pytest.raises(AnalysisFailed, match="connection refused"):
                await _drain(client)

    @pytest.mark.asyncio
    async def test_mid_stream_failure_keeps_partial_text(self):
        updates = []
        async with _client(lambda request: httpx.Response(200, stream=_BrokenStream())) as client:
            fragments = stream_insights("Skills: Go", base_url=OLLAMA, client=client)
            with pytest.raises(AnalysisFailed) as exc_info:
                await collect_insights(fragments, updates.append)
        assert updates == ["Par"]
        assert exc_info.value.partial == "Par"

    @pytest.mark.asyncio
    async def test_consumer_can_stop_early(self):
        body = _ndjson({"response": "a"}, {"response": "b"}, {"response": "c"})
        async with _client(lambda request: httpx.Response(200, content=body)) as client:
            fragments = stream_insights("Skills: Go", base_url=OLLAMA, client=client)
            first = await fragments.__anext__()
            await fragments.aclose()
        assert first == "a"


class TestCollectInsights:
    @pytest.mark.asyncio
    async def test_on_update_sees_growing_text(self):
        async def fragments():
            for piece in ("He", "llo", "!"):
                yield piece

        updates = []
        buffer = await collect_insights(fragments(), updates.append)
        assert updates == ["He", "Hello", "Hello!"]
        assert buffer.text == "Hello!"


def test_prompt_without_job_has_no_job_context():
    prompt = build_insight_prompt("Skills: Go", max_chars=3000)
    assert "applied for" not in prompt
    assert prompt.rstrip().endswith("Skills: Go")


@pytest.mark.asyncio
async def test_redirect_is_not_success():
    def handler(request):
        return httpx.Response(302, headers={"location": "http://elsewhere.test/api/generate"})

    async with _client(handler) as client:
        with pytest.raises(AnalysisFailed) as exc_info:
            await _drain(client)
    assert exc_info.value.reason == "HTTP error! status: 302"
