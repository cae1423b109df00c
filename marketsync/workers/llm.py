from __future__ import annotations

from typing import Any, List, Optional, Sequence

from pydantic_ai import Agent, BinaryContent
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from marketsync.config import Settings, get_settings
from marketsync.constants.default_system_prompt import AIChatText, DefaultSystemPrompt
from marketsync.infra.logging_config import get_logger
from marketsync.schemas.ai_chat import AIImage, AITurn

logger = get_logger("llm")


def _turns_to_message_list(turns: Sequence[AITurn]) -> List[Any]:
    """Convert transcript turns to a pydantic_ai ModelMessage list for message_history."""
    out: List[Any] = []
    for turn in turns:
        content = turn.text.strip()
        if not content:
            continue
        if turn.role == "user":
            out.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        else:
            out.append(ModelResponse(parts=[TextPart(content=content)]))
    return out


def _message_list_with_system_prompt(
    system_prompt: str, turns: Sequence[AITurn]
) -> List[Any]:
    """Build message_history with system prompt always first, then earlier turns."""

    # https://ai.pydantic.dev/agent/#system-prompts
    system_message = ModelRequest(parts=[SystemPromptPart(content=system_prompt)])
    return [system_message] + _turns_to_message_list(turns)


def _build_prompt(turn: AITurn, image: Optional[AIImage]) -> Any:
    if image is None:
        return turn.text
    return [turn.text, BinaryContent(data=image.data, media_type=image.media_type)]


class LLMResponder:
    """Answers the last user turn with the whole transcript as context."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        system_prompt: Optional[str] = None,
        agent: Optional[Agent] = None,
    ) -> None:
        if agent is None:
            provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
            model = OpenAIChatModel(model_name, provider=provider)
            agent = Agent(model)
        logger.info("Initializing LLM responder with model %s", model_name)
        self._system_prompt = system_prompt or DefaultSystemPrompt.CONTENT
        self._agent = agent

    async def reply(
        self, turns: Sequence[AITurn], image: Optional[AIImage] = None
    ) -> str:
        if not turns or turns[-1].role != "user":
            raise ValueError("the last turn must come from the user")
        message_history = _message_list_with_system_prompt(
            self._system_prompt, turns[:-1]
        )
        result = await self._agent.run(
            _build_prompt(turns[-1], image),
            message_history=message_history,
        )
        text = str(result.output or "").strip()
        return text or AIChatText.EMPTY_REPLY


def build_llm_responder_from_env(settings: Optional[Settings] = None) -> LLMResponder:
    settings = settings or get_settings()
    logger.info(
        "LLM responder config: model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; set it to a valid OpenAI or LiteLLM API key to avoid 401 errors."
        )
    return LLMResponder(
        model_name=settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )
