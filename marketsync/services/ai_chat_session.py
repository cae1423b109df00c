"""
AI chat: a transcript held only on the client and replayed on every call.

Each send appends the user turn, calls the responder once with the whole
transcript, and appends exactly one model turn: the reply, or an apology if
the call failed.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from marketsync.constants.default_system_prompt import AIChatText
from marketsync.core.exceptions import (
    ChatSessionError,
    DraftValidationError,
    EmptyMessageError,
)
from marketsync.infra.logging_config import get_logger
from marketsync.schemas.ai_chat import AIImage, AITurn

logger = get_logger("ai_chat")


class AIResponder(Protocol):
    async def reply(
        self, turns: Sequence[AITurn], image: Optional[AIImage] = None
    ) -> str: ...


class AIChatSession:
    def __init__(
        self, responder: AIResponder, apology_text: str = AIChatText.APOLOGY
    ) -> None:
        self._responder = responder
        self._apology_text = apology_text
        self._turns: list[AITurn] = []
        self._busy = False
        self._generation = 0

    @property
    def turns(self) -> list[AITurn]:
        return list(self._turns)

    @property
    def busy(self) -> bool:
        return self._busy

    async def send(self, text: str = "", image_b64: Optional[str] = None) -> AITurn:
        """
        Send one user turn and return the model turn appended for it.

        Raises EmptyMessageError when there is neither text nor image,
        DraftValidationError for an unreadable image and ChatSessionError
        while a previous send is still waiting for its reply.
        """
        if self._busy:
            raise ChatSessionError("previous message is still waiting for a reply")
        text = (text or "").strip()
        if not text and not image_b64:
            raise EmptyMessageError("message needs text or an image")
        image: Optional[AIImage] = None
        if image_b64:
            try:
                image = AIImage.from_base64(image_b64)
            except ValueError as e:
                raise DraftValidationError(str(e)) from e

        self._turns.append(
            AITurn(
                role="user",
                text=text or AIChatText.IMAGE_ONLY_PROMPT,
                has_image=image is not None,
            )
        )
        generation = self._generation
        self._busy = True
        reply: Optional[AITurn] = None
        try:
            answer = await self._responder.reply(list(self._turns), image=image)
            reply = AITurn(role="model", text=answer.strip() or AIChatText.EMPTY_REPLY)
        except Exception:
            logger.exception("AI responder failed")
        finally:
            reply = reply or AITurn(role="model", text=self._apology_text)
            # after reset() the busy flag belongs to whatever send came next
            if generation == self._generation:
                self._busy = False
                self._turns.append(reply)
        return reply

    def reset(self) -> None:
        """Drop the transcript. A reply still in flight is discarded."""
        self._generation += 1
        self._turns = []
        self._busy = False
