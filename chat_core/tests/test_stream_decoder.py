import json

import httpx
import pytest

from chat_core.domain.exceptions import NetworkError
from chat_core.providers.stream_decoder import StreamDecoder, decode_stream, extract_delta


def event(content: str) -> bytes:
    payload = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


async def chunks_of(*chunks: bytes):
    for chunk in chunks:
        yield chunk


@pytest.mark.asyncio
async def test_decode_round_trip():
    echoed = []
    reply = await decode_stream(
        chunks_of(
            b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n',
            b'data: {"choices":[{"delta":{"content":"lo"}}]}\n',
            b"data: [DONE]\n",
        ),
        on_delta=echoed.append,
    )
    assert reply == "Hello"
    assert echoed == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_malformed_line_is_skipped():
    reply = await decode_stream(
        chunks_of(event("foo"), b"data: {not json\n", event("bar"), b"data: [DONE]\n")
    )
    assert reply == "foobar"


@pytest.mark.asyncio
async def test_oversized_integer_line_is_skipped():
    reply = await decode_stream(
        chunks_of(event("a"), b"data: " + b"1" * 5000 + b"\n", event("b"), b"data: [DONE]\n")
    )
    assert reply == "ab"


def test_deeply_nested_line_is_skipped():
    decoder = StreamDecoder()
    deltas = decoder.feed(event("a") + b"data: " + b"[" * 100000 + b"\n" + event("b"))
    assert deltas == ["a", "b"]
    assert decoder.skipped_lines == 1
    assert decoder.text == "ab"


@pytest.mark.asyncio
async def test_chunks_after_done_are_never_read():
    consumed = []

    async def stream():
        for chunk in (event("a"), b"data: [DONE]\n" + event("ignored-same-chunk"), event("ignored")):
            consumed.append(chunk)
            yield chunk

    reply = await decode_stream(stream())
    assert reply == "a"
    assert len(consumed) == 2


@pytest.mark.asyncio
async def test_stream_exhaustion_without_done_returns_buffer():
    reply = await decode_stream(chunks_of(event("  partial "), event("reply  ")))
    assert reply == "partial reply"


@pytest.mark.asyncio
async def test_line_split_across_chunks():
    raw = event("split") + b"data: [DONE]\n"
    reply = await decode_stream(chunks_of(raw[:10], raw[10:25], raw[25:]))
    assert reply == "split"


@pytest.mark.asyncio
async def test_multibyte_character_split_across_chunks():
    raw = 'data: {"choices":[{"delta":{"content":"你好"}}]}\n'.encode("utf-8")
    cut = raw.index("你".encode("utf-8")) + 1
    reply = await decode_stream(chunks_of(raw[:cut], raw[cut:]))
    assert reply == "你好"


@pytest.mark.asyncio
async def test_invalid_bytes_are_replaced_not_fatal():
    raw = b'data: {"choices":[{"delta":{"content":"ok\xff"}}]}\n'
    # \xff 出现在 JSON 字符串里，替换为 U+FFFD 后仍是合法 JSON
    reply = await decode_stream(chunks_of(raw))
    assert reply == "ok\ufffd"


@pytest.mark.asyncio
async def test_final_line_without_newline_is_processed():
    reply = await decode_stream(chunks_of(b'data: {"choices":[{"delta":{"content":"tail"}}]}'))
    assert reply == "tail"


def test_non_data_lines_and_crlf():
    decoder = StreamDecoder()
    deltas = decoder.feed(
        b": keep-alive\r\n"
        b"event: message\r\n"
        b'data:{"choices":[{"delta":{"content":"no-space"}}]}\r\n'
        b'data: {"choices":[{"delta":{"content":"x"}}]}\r\n'
    )
    assert deltas == ["x"]
    assert decoder.state == "reading"


def test_state_machine_done_is_terminal():
    decoder = StreamDecoder()
    decoder.feed(event("a") + b"data: [DONE]\n")
    assert decoder.done
    assert decoder.feed(event("b")) == []
    assert decoder.close() == []
    assert decoder.text == "a"


def test_usage_and_finish_reason_recorded():
    decoder = StreamDecoder()
    decoder.feed(
        b'data: {"choices":[{"delta":{},"finish_reason":"stop"}],'
        b'"x_groq":{"usage":{"prompt_tokens":3,"completion_tokens":4,"total_tokens":7}}}\n'
    )
    assert decoder.finish_reason == "stop"
    assert decoder.usage.total_tokens == 7


def test_extract_delta_best_effort():
    assert extract_delta({"choices": [{"delta": {"content": "hi"}}]}) == "hi"
    assert extract_delta({"choices": []}) is None
    assert extract_delta({"choices": [{"delta": {"role": "assistant"}}]}) is None
    assert extract_delta({"choices": [{"delta": {"content": 5}}]}) is None
    assert extract_delta({"choices": "nope"}) is None
    assert extract_delta([1, 2]) is None
    assert extract_delta(None) is None


@pytest.mark.asyncio
async def test_transport_error_while_reading_is_fatal():
    async def broken():
        yield event("a")
        raise httpx.ReadError("connection reset")

    with pytest.raises(NetworkError) as exc_info:
        await decode_stream(broken())
    assert exc_info.value.code == "STREAM_READ_ERROR"


@pytest.mark.asyncio
async def test_mistyped_usage_fields_are_ignored():
    decoder = StreamDecoder()
    decoder.feed(
        b'data: {"choices":[{"delta":{"content":"a"}}],'
        b'"usage":{"prompt_tokens":"n/a","completion_tokens":2,"total_tokens":[1]}}\n'
    )
    decoder.feed(event("b"))
    assert decoder.text == "ab"
    assert decoder.usage.prompt_tokens == 0
    assert decoder.usage.completion_tokens == 2
    assert decoder.usage.total_tokens == 0

    reply = await decode_stream(
        chunks_of(
            b'data: {"choices":[{"delta":{"content":"a"}}],"usage":{"prompt_tokens":"n/a"}}\n',
            event("b"),
        )
    )
    assert reply == "ab"
