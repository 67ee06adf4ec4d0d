import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from cv_chat.utils.constants import FALLBACK_REPLY
from cv_chat.utils.errors import UpstreamError
from cv_chat.utils.settings import Settings

logger = logging.getLogger(__name__)


class LLMClient:
    """Single-shot chat completion against an OpenAI-compatible API (Groq by default)."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = settings.llm_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self.client = client or AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout,
            max_retries=0,
        )

    async def complete(self, system_prompt: str, user_message: str) -> str:
        logger.info("sending completion request model=%s", self.model)
        try:
            cmpl = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.exception("completion request failed")
            raise UpstreamError("Failed to generate a response", details=str(e))

        content = cmpl.choices[0].message.content if cmpl.choices else None
        return (content or "").strip() or FALLBACK_REPLY
