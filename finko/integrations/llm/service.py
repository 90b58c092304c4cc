import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from finko.core.config import config
from finko.core.exceptions import LLMServiceError
from finko.core.fetcher import fetch

logger = logging.getLogger(__name__)


@dataclass
class LLMMessage:
    """Represents a message in the conversation."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMRequest:
    """Represents a request to the LLM service."""

    messages: List[LLMMessage]
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    json_mode: bool = False
    call_stack: Optional[str] = None


@dataclass
class LLMResponse:
    """Represents a response from the LLM service."""

    content: str
    usage: Optional[Dict[str, int]] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


class LLMService:
    """Chat completions against an OpenAI-compatible API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key if api_key is not None else config.openai_api_key
        self.default_model = model_name or config.openai_model_name
        self.base_url = (base_url or config.openai_base_url).rstrip("/")
        self.timeout = timeout

        if not self.api_key:
            logger.warning("OpenAI API key not configured")

    async def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        json_mode: bool = False,
        call_stack: Optional[str] = None,
    ) -> LLMResponse:
        """Generate response with system prompt and user message."""
        request = LLMRequest(
            messages=[
                LLMMessage(role="system", content=system_prompt),
                LLMMessage(role="user", content=user_message),
            ],
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=json_mode,
            call_stack=call_stack,
        )
        return await self.chat(request)

    async def chat(self, request: LLMRequest) -> LLMResponse:
        if not self.api_key:
            raise LLMServiceError("OpenAI API key not configured")

        payload = self._build_payload(request)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        data = await fetch(
            f"{self.base_url}/chat/completions",
            method="POST",
            headers=headers,
            json=payload,
            timeout=self.timeout,
        )
        if data is None:
            raise LLMServiceError(
                f"LLM API returned no response ({request.call_stack or 'chat'})"
            )
        return self._parse_response(data)

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model or self.default_model,
            "messages": [
                {"role": msg.role, "content": msg.content} for msg in request.messages
            ],
        }

        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}

        return payload

    def _parse_response(self, data: Dict[str, Any]) -> LLMResponse:
        """Parse the API response into an LLMResponse object."""
        try:
            if "choices" not in data or not data["choices"]:
                raise LLMServiceError("No choices in API response")

            choice = data["choices"][0]
            message = choice.get("message") or {}
            content = (message.get("content") or "").strip()

            content = self._clean_special_tokens(content)
            if not content:
                raise LLMServiceError("Empty content in LLM response")

            return LLMResponse(
                content=self._extract_json_from_markdown(content),
                usage=data.get("usage"),
                model=data.get("model"),
                finish_reason=choice.get("finish_reason"),
                raw_response=data,
            )

        except (KeyError, IndexError, AttributeError) as e:
            logger.error(f"Unexpected response format: {data}")
            raise LLMServiceError(f"Unexpected response format: {str(e)}")

    def _clean_special_tokens(self, content: str) -> str:
        """Remove special control tokens that some models emit."""
        special_tokens = [
            r"<\|begin_of_text\|>",
            r"<\|end_of_text\|>",
            r"<s>",
            r"</s>",
            r"<\|im_start\|>",
            r"<\|im_end\|>",
        ]

        for token in special_tokens:
            content = re.sub(token, "", content)

        return content.strip()

    def _extract_json_from_markdown(self, content: str) -> str:
        """Strip a ```json (or bare ```) fence around the payload, if any."""
        match = re.search(r"```(?:json)?\s*\n?(.*?)```", content, re.DOTALL)
        if match:
            return match.group(1).strip()
        return content
