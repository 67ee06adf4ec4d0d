import logging
from dataclasses import dataclass

from starlette.concurrency import run_in_threadpool

from cv_chat.services.llm import LLMClient
from cv_chat.services.prompt import Identity, compose_prompt
from cv_chat.services.retriever import ContextRetriever

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    response: str
    context_used: bool


class ChatPipeline:
    """retrieve -> compose -> complete, for a message that already passed the checks."""

    def __init__(self, retriever: ContextRetriever, llm: LLMClient, identity: Identity):
        self.retriever = retriever
        self.llm = llm
        self.identity = identity

    async def answer(self, message: str) -> ChatReply:
        # store clients are blocking
        chunks = await run_in_threadpool(self.retriever.retrieve)
        system_prompt = compose_prompt(chunks, self.identity)
        text = await self.llm.complete(system_prompt, message)
        return ChatReply(response=text, context_used=len(chunks) > 0)
