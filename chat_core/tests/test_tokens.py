import pytest

from chat_core.context import tokens
from chat_core.domain.exceptions import TokenizerError
from chat_core.domain.models import ChatMessage


class FakeEncoding:
    def encode_ordinary(self, text):
        return [ord(ch) for ch in text]


@pytest.fixture(autouse=True)
def _clear_encoding_cache():
    tokens.get_encoding.cache_clear()
    yield
    tokens.get_encoding.cache_clear()


def test_encoding_loaded_once(monkeypatch):
    loads = []

    def fake_get_encoding(name):
        loads.append(name)
        return FakeEncoding()

    monkeypatch.setattr("tiktoken.get_encoding", fake_get_encoding)
    assert tokens.count_tokens("abc") == 3
    assert tokens.count_tokens("") == 0
    assert tokens.count_tokens("hello") == 5
    assert loads == ["cl100k_base"]


def test_count_message_tokens_sums_content(monkeypatch):
    monkeypatch.setattr("tiktoken.get_encoding", lambda name: FakeEncoding())
    msgs = [ChatMessage(role="user", content="ab"), ChatMessage(role="assistant", content="cde")]
    assert tokens.count_message_tokens(msgs) == 5


def test_encoding_load_failure_is_fatal(monkeypatch):
    def broken(name):
        raise OSError("no network")

    monkeypatch.setattr("tiktoken.get_encoding", broken)
    with pytest.raises(TokenizerError) as exc_info:
        tokens.count_tokens("abc")
    assert exc_info.value.code == "TOKENIZER_LOAD_ERROR"
    assert "no network" in exc_info.value.message
