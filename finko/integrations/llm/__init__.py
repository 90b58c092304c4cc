from .service import (
    LLMService,
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMServiceError,
)

__all__ = [
    "LLMService",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMServiceError",
]
