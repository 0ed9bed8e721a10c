"""
Text-generation client (OpenAI chat completions via LangChain).

Every LLM call in the package goes through TextGenerationClient.complete_json:
system + user prompt in, one JSON object out. Retries are NOT done here;
RetryingExternalCaller owns the retry budget, so the underlying OpenAI client
is created with max_retries=0.

Usage:
    client = TextGenerationClient(temperature=0.1, max_tokens=1000)
    data = await client.complete_json(SYSTEM_PROMPT, user_prompt)
"""

import logging
from typing import Any, Dict, Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI

from career_copilot.common.config import Config
from career_copilot.common.error_handling import ExternalServiceError, describe_error
from career_copilot.common.json_utils import parse_json_object

logger = logging.getLogger(__name__)


class JsonCompletionClient(Protocol):
    """What parsers and matchers need from a text-generation backend."""

    def is_configured(self) -> bool:
        ...

    async def complete_json(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        ...


def create_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    json_mode: bool = True,
    api_key: Optional[str] = None,
    **kwargs: Any,
) -> Runnable:
    """
    Create a ChatOpenAI runnable configured from Config.

    Args:
        model: Model name (defaults to Config.DEFAULT_MODEL)
        temperature: Sampling temperature (defaults to 0.2)
        max_tokens: Completion token cap
        json_mode: Bind response_format={"type": "json_object"}
        api_key: API key (defaults to Config.OPENAI_API_KEY)
        **kwargs: Additional ChatOpenAI parameters

    Returns:
        A runnable accepting a message list
    """
    effective_model = model or Config.DEFAULT_MODEL
    llm = ChatOpenAI(
        model=effective_model,
        temperature=temperature if temperature is not None else 0.2,
        max_tokens=max_tokens,
        api_key=api_key or Config.OPENAI_API_KEY,
        base_url=Config.OPENAI_BASE_URL,
        timeout=Config.OPENAI_TIMEOUT_SECONDS,
        max_retries=0,
        **kwargs,
    )
    logger.debug(
        f"Created OpenAI LLM: model={effective_model}, temperature={temperature}, "
        f"max_tokens={max_tokens}, json_mode={json_mode}"
    )
    if json_mode:
        return llm.bind(response_format={"type": "json_object"})
    return llm


class TextGenerationClient:
    """
    JSON-mode chat client.

    The LangChain runnable is created lazily so that constructing a service
    without an API key never fails; is_configured() tells callers to skip
    straight to their fallback instead.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        llm: Optional[Runnable] = None,
        api_key: Optional[str] = None,
    ):
        """
        Args:
            model: Model name (defaults to Config.DEFAULT_MODEL)
            temperature: Sampling temperature
            max_tokens: Completion token cap
            llm: Pre-built runnable (skips create_llm; used by tests)
            api_key: Overrides Config.OPENAI_API_KEY
        """
        self.model = model or Config.DEFAULT_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._llm = llm
        self._api_key = api_key if api_key is not None else Config.OPENAI_API_KEY

    def is_configured(self) -> bool:
        return self._llm is not None or bool(self._api_key)

    @property
    def llm(self) -> Runnable:
        if self._llm is None:
            self._llm = create_llm(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                api_key=self._api_key,
            )
        return self._llm

    async def complete_json(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        """
        Send one system + user exchange and parse the reply as a JSON object.

        Raises:
            ExternalServiceError: Transport/provider failure
            MalformedResponseError: Reply missing or not a JSON object
        """
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            raise ExternalServiceError(
                describe_error(e),
                status_code=getattr(e, "status_code", None),
            ) from e

        content = response.content if hasattr(response, "content") else str(response)
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return parse_json_object(content)
