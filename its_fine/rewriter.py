from __future__ import annotations

import json
import logging
import threading
from typing import Dict, List, Optional, Sequence

from openai import APIError, OpenAI
from pydantic import BaseModel

from .exceptions import (
    ConfigError,
    CountMismatchError,
    EmptyResponseError,
    NoChoiceError,
    ResponseParseError,
    TransportError,
)
from .models import Headline

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"

SYSTEM_PROMPT = (
    "You are a headline conversion agent. You convert headlines to be more like what "
    "the user wants to read. The output is meant to be satire.\n\n"
    "Make the headlines a bit easier to read, less alarming, less dire. "
    "Put an optimistic spin on the headlines.\n\n"
    "Answer with exactly one rewritten headline per line, in the order given, and nothing else."
)

HEADLINES_HEADER = "Here are the headlines:\n"

# Indexed by intensity level - 1; the last entry is reused for every later level.
INTENSITY_MODIFIERS = (
    "",
    "Make these a little more upbeat than last time.",
    "Turn the optimism up further. Every headline should sound like good news.",
    "Go well over the top. These should read like a cheerful parody of the news.",
    "Maximum optimism. Make every headline absurdly, gloriously positive satire.",
)

Message = Dict[str, str]


def modifier_for_level(level: int) -> str:
    if level < 1:
        raise ValueError(f"Intensity level starts at 1, got {level}")
    return INTENSITY_MODIFIERS[min(level, len(INTENSITY_MODIFIERS)) - 1]


def build_user_message(titles: Sequence[str], level: int) -> str:
    modifier = modifier_for_level(level)
    prefix = f"{modifier}\n\n" if modifier else ""
    return prefix + HEADLINES_HEADER + "\n".join(titles)


def split_lines(content: str) -> List[str]:
    """One rewritten title per non-blank line, whitespace-trimmed, in order."""
    return [line.strip() for line in content.splitlines() if line.strip()]


class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = None


class ChatChoice(BaseModel):
    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatUsage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionResponse(BaseModel):
    id: str
    object: str
    created: int
    model: str
    choices: List[ChatChoice]
    usage: ChatUsage


class ConversationHistory:
    """
    Role-tagged messages sent with every rewrite request.

    The system message is added once and never removed. With `max_turns` set,
    the oldest non-system messages are dropped once more than `max_turns`
    user/assistant pairs have accumulated; by default nothing is ever dropped.
    """

    def __init__(self, system_prompt: str = SYSTEM_PROMPT, *, max_turns: Optional[int] = None) -> None:
        self.max_turns = max_turns
        self._messages: List[Message] = [{"role": "system", "content": system_prompt}]

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, role: str, content: str) -> None:
        self._messages.append({"role": role, "content": content})

    def messages(self) -> List[Message]:
        return [dict(m) for m in self._messages]

    def trim(self) -> None:
        if self.max_turns is None:
            return
        excess = len(self._messages) - 1 - 2 * self.max_turns
        if excess > 0:
            del self._messages[1:1 + excess]


class HeadlineRewriter:
    """
    Rewrite batches of headlines through a chat-completion endpoint.

    Every call raises the intensity level by one and extends the conversation, so
    later rewrites build on earlier ones. Calls are serialised; history and level
    are only touched from inside `rewrite()`.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        client: Optional[OpenAI] = None,
        max_history_turns: Optional[int] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        if client is None:
            if not api_key:
                raise ConfigError("OPENAI_API_KEY not set.")
            # Retries are left to the user; the SDK would otherwise retry twice
            client = OpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self._client = client
        self.model = model
        self._history = ConversationHistory(system_prompt, max_turns=max_history_turns)
        self._level = 0
        self._lock = threading.Lock()

    @property
    def level(self) -> int:
        """Intensity level of the most recent call (0 before the first one)."""
        return self._level

    @property
    def history(self) -> List[Message]:
        return self._history.messages()

    def rewrite(self, headlines: Sequence[Headline]) -> List[Headline]:
        with self._lock:
            self._level += 1
            level = self._level
            user_message = build_user_message([h.title for h in headlines], level)
            # Stays in history even if the request below fails
            self._history.append("user", user_message)
            logger.info("Rewriting %d headline(s) at intensity level %d", len(headlines), level)

            content = self._complete(self._history.messages())

            self._history.append("assistant", content)
            self._history.trim()

        titles = split_lines(content)
        if len(titles) != len(headlines):
            raise CountMismatchError(expected=len(headlines), actual=len(titles))
        return [h.with_title(t) for h, t in zip(headlines, titles)]

    def _complete(self, messages: List[Message]) -> str:
        try:
            raw = self._client.chat.completions.with_raw_response.create(
                model=self.model,
                messages=messages,
            )
        except APIError as e:
            raise TransportError(f"Rewrite request failed: {e}") from e

        body = raw.http_response.content
        if not body:
            raise EmptyResponseError("No data received from the rewrite endpoint")

        try:
            response = ChatCompletionResponse.model_validate(json.loads(body))
        except ValueError as e:
            raise ResponseParseError(f"Unexpected rewrite response: {e}") from e

        if not response.choices or response.choices[0].message.content is None:
            raise NoChoiceError("No assistant message found in response")
        logger.debug(
            "Rewrite used %d prompt / %d completion tokens",
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
        )
        return response.choices[0].message.content
