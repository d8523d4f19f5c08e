"""LLM clients used for query canonicalization and reranking."""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
import httpx
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError, APIConnectionError
import logging

from config import GROQ_API_KEY, LLM_MODEL, LLM_TIMEOUT, OLLAMA_HOST

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class BaseLLMClient(ABC):
    """Chat model that answers with a JSON document."""

    name: str = "llm"

    @abstractmethod
    def complete_json(
        self,
        system_prompt: str,
        user_content: str,
        max_tokens: int = 512
    ) -> LLMResponse:
        """Return the raw assistant text, expected to be strict JSON."""
        ...

    def _fail(
        self,
        code: str,
        message: str,
        model: str,
        start_time: float,
        exc: Exception,
        **extra: Any
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        details = {
            "model": model,
            "latency_ms": latency_ms,
            "original_error": str(exc),
            **extra
        }
        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{self.name} error {code}: model={model}, latency={latency_ms}ms, error={exc}",
            extra={"error_code": code, "error_details": details}
        )
        return LLMClientError(error)


class LLMClient(BaseLLMClient):
    """Cloud variant: Groq chat completions in JSON mode."""

    name = "groq"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = LLM_MODEL,
        timeout: float = LLM_TIMEOUT
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Chat model name
            timeout: Per-call timeout in seconds; the SDK's own retries are off
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.client = Groq(api_key=self.api_key, timeout=timeout, max_retries=0)
        logger.info(f"LLMClient initialized with model: {model}")

    def complete_json(
        self,
        system_prompt: str,
        user_content: str,
        max_tokens: int = 512
    ) -> LLMResponse:
        """
        Run one deterministic JSON-mode completion.

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()
        model = self.model

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content}
                ],
                max_tokens=max_tokens,
                temperature=0,
                response_format={"type": "json_object"}
            )
        except RateLimitError as e:
            raise self._fail(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60
            )
        except AuthenticationError as e:
            raise self._fail(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )
        except APITimeoutError as e:
            raise self._fail("TIMEOUT_ERROR", "Request timed out.", model, start_time, e)
        except APIConnectionError as e:
            raise self._fail("CONNECTION_ERROR", "Could not reach Groq API.", model, start_time, e)
        except APIError as e:
            raise self._fail("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)
        except Exception as e:
            raise self._fail(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e, error_type=type(e).__name__
            )

        latency_ms = int((time.time() - start_time) * 1000)
        text = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        tokens_input = getattr(usage, "prompt_tokens", 0) or 0
        tokens_output = getattr(usage, "completion_tokens", 0) or 0

        logger.info(
            f"Generated response: model={model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )
        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=model
        )


class OllamaClient(BaseLLMClient):
    """Local variant: Ollama /api/chat with JSON output."""

    name = "ollama"

    def __init__(
        self,
        model: str = LLM_MODEL,
        endpoint: str = OLLAMA_HOST,
        timeout: float = LLM_TIMEOUT
    ):
        endpoint = endpoint.strip()
        if not endpoint.startswith(("http://", "https://")):
            endpoint = "http://" + endpoint
        self.model = model
        self.base_url = endpoint.rstrip("/")
        self.timeout = timeout
        logger.info(f"OllamaClient initialized: {self.base_url} model={model}")

    def complete_json(
        self,
        system_prompt: str,
        user_content: str,
        max_tokens: int = 512
    ) -> LLMResponse:
        start_time = time.time()
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            "stream": False,
            "format": "json",
            "options": {"temperature": 0, "num_predict": max_tokens}
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(f"{self.base_url}/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise self._fail("TIMEOUT_ERROR", "Request timed out.", self.model, start_time, e)
        except httpx.HTTPStatusError as e:
            raise self._fail(
                "API_ERROR",
                f"Ollama returned {e.response.status_code}",
                self.model, start_time, e
            )
        except httpx.RequestError as e:
            raise self._fail("CONNECTION_ERROR", "Could not reach Ollama.", self.model, start_time, e)
        except ValueError as e:
            raise self._fail("API_ERROR", "Ollama returned a non-JSON body.", self.model, start_time, e)

        message = data.get("message") if isinstance(data, dict) else None
        if isinstance(message, dict) and "content" in message:
            text = message["content"] or ""
        else:
            text = data.get("response", "") if isinstance(data, dict) else ""

        latency_ms = int((time.time() - start_time) * 1000)
        return LLMResponse(
            text=text,
            tokens_input=int(data.get("prompt_eval_count", 0) or 0),
            tokens_output=int(data.get("eval_count", 0) or 0),
            latency_ms=latency_ms,
            model_used=self.model
        )


def create_llm_client(kind: str) -> Optional[BaseLLMClient]:
    """
    Resolve the configured language model once, at startup.

    Args:
        kind: "groq", "ollama" or "disabled"

    Returns:
        A client, or None when disabled or not constructible
    """
    kind = (kind or "disabled").strip().lower()
    if kind == "disabled":
        logger.info("LLM provider disabled")
        return None
    try:
        if kind == "groq":
            return LLMClient()
        if kind == "ollama":
            return OllamaClient()
    except ValueError as e:
        logger.warning(f"LLM provider '{kind}' unavailable: {e}")
        return None
    logger.warning(f"Unknown LLM provider '{kind}'; LLM features disabled")
    return None
