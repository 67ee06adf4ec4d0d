from dataclasses import dataclass
from typing import Sequence

from cv_chat.utils.constants import PROFILE_PROMPT_TEMPLATE


@dataclass(frozen=True)
class Identity:
    name: str
    title: str


def compose_prompt(chunks: Sequence[str], identity: Identity) -> str:
    context = "\n\n".join(chunks)
    return PROFILE_PROMPT_TEMPLATE.format(
        name=identity.name,
        title=identity.title,
        context=context,
    )
