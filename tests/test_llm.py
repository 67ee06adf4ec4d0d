import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from cv_chat.services.llm import LLMClient
from cv_chat.utils.constants import FALLBACK_REPLY
from cv_chat.utils.errors import UpstreamError
from cv_chat.utils.settings import Settings


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_client(completions):
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMClient(Settings(llm_api_key="k"), client=fake)


def test_forwards_system_and_user_messages():
    completions = FakeCompletions(content="  He has six years on AWS.  ")
    text = asyncio.run(make_client(completions).complete("SYSTEM", "What is your AWS experience?"))
    assert text == "He has six years on AWS."
    assert completions.kwargs["model"] == "llama3-8b-8192"
    assert completions.kwargs["temperature"] == 0.7
    assert completions.kwargs["max_tokens"] == 1000
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "What is your AWS experience?"},
    ]


@pytest.mark.parametrize("content", [None, "", "   "])
def test_empty_completion_falls_back(content):
    text = asyncio.run(make_client(FakeCompletions(content=content)).complete("s", "u"))
    assert text == FALLBACK_REPLY


def test_sdk_error_becomes_upstream_error():
    err = openai.APIConnectionError(request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions"))
    with pytest.raises(UpstreamError) as exc:
        asyncio.run(make_client(FakeCompletions(error=err)).complete("s", "u"))
    assert exc.value.status_code == 500
    assert exc.value.message == "Failed to generate a response"
