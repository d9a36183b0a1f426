"""Construction of the outbound streamed chat-completion request."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal

from pydantic import BaseModel

from .config import ChatConfig


class ChatMessage(BaseModel):
    role: Literal["system", "user"]
    content: str


@dataclass(frozen=True)
class RequestDescriptor:
    """A fully built request; sending it is the client's job."""

    url: str
    headers: Dict[str, str]
    body: Dict[str, Any] = field(default_factory=dict)
    method: str = "POST"


def build_messages(config: ChatConfig) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=config.system_prompt),
        ChatMessage(role="user", content=config.prompt),
    ]


def build_request(config: ChatConfig) -> RequestDescriptor:
    """Return the POST descriptor for *config* with streaming enabled.

    The Authorization header is only present when a credential is configured.
    """
    headers = {"Content-Type": "application/json"}
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"

    body = {
        "model": config.model,
        "messages": [m.model_dump() for m in build_messages(config)],
        "stream": True,
    }
    return RequestDescriptor(url=str(config.endpoint), headers=headers, body=body)
