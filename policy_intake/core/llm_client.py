"""LLM clients for the document-understanding service.

Wraps Gemini (google-genai SDK) and OpenRouter (httpx) behind a single
``generate_content`` interface. Content parts are either plain strings,
``{"text": ...}`` dicts, or ``{"inline_data": {"mime_type": ..., "data": bytes}}``
dicts for binary documents.
"""

import asyncio
import base64
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import httpx
from httpx import HTTPStatusError, TimeoutException
from google import genai
from google.genai import types

from policy_intake.core.exceptions import APIClientError, APITimeoutError, ConfigurationError
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

ContentParts = Union[str, List[Union[str, Dict[str, Any]]]]


class BaseLLMClient:
    """Base client for HTTP LLM API interactions.

    Handles request building, retries, timeout management and error logging.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 1,
        retry_delay: int = 2
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Total number of attempts
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST to the API with retry logic.

        Returns:
            Parsed JSON response

        Raises:
            APIClientError: If the API call fails after retries
            APITimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url

        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            default_headers.update(headers)

        self.logger.debug(f"Calling LLM API: {url}", extra={"timeout": self.timeout})

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(url, headers=default_headers, json=payload)
                    response.raise_for_status()
                    return response.json()

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except (httpx.HTTPError, ValueError) as e:
                    await self._handle_generic_error(e, attempt, url)

        raise APIClientError(f"Failed to call API {url} after {self.max_retries} attempts")

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "status_code": status_code, "error_body": error_body[:500]}
        )

        # Client errors other than rate limiting are not retried
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}: {error_body}", original_error=error)

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API HTTP Error {status_code}", original_error=error)

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        self.logger.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(f"API Timeout after {self.max_retries} attempt(s)", original_error=error)

    async def _handle_generic_error(self, error: Exception, attempt: int, url: str):
        self.logger.warning(
            f"API Generic Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}", original_error=error)

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        await asyncio.sleep(self.retry_delay * (2 ** attempt))


class GeminiClient:
    """Wrapper for Google Gemini API client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: int = 60,
        max_retries: int = 1,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        try:
            self.client = genai.Client(api_key=self.api_key)
            LOGGER.info(f"Initialized Gemini client with model {self.model}")
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}")
            raise APIClientError(f"Failed to initialize Gemini client: {e}", original_error=e)

    async def generate_content(
        self,
        contents: ContentParts,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using Gemini model.

        Args:
            contents: Input content (string or list of parts)
            system_instruction: Optional system instruction
            generation_config: Optional generation config (temperature, etc.)

        Returns:
            Generated text response

        Raises:
            APIClientError: If generation fails
        """
        config = types.GenerateContentConfig(temperature=0.0)

        if generation_config:
            if "temperature" in generation_config:
                config.temperature = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                config.max_output_tokens = generation_config["max_output_tokens"]
            if "response_mime_type" in generation_config:
                config.response_mime_type = generation_config["response_mime_type"]

        if system_instruction:
            config.system_instruction = system_instruction

        for attempt in range(self.max_retries):
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config
                )

                if not response.text:
                    LOGGER.warning("Empty response from Gemini")
                    return ""

                return response.text

            except Exception as e:
                LOGGER.warning(
                    f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                else:
                    raise APIClientError(f"Gemini generation failed: {e}", original_error=e)

        raise APIClientError("Gemini generation failed")


class OpenRouterClient:
    """Wrapper for OpenRouter chat completions API.

    Binary parts are sent as data URLs (``image_url`` for images, ``file``
    for PDFs), text parts as ``text`` content blocks.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 1,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries
        )
        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    @staticmethod
    def _to_content_blocks(contents: ContentParts) -> List[Dict[str, Any]]:
        if isinstance(contents, str):
            return [{"type": "text", "text": contents}]

        blocks: List[Dict[str, Any]] = []
        for part in contents:
            if isinstance(part, str):
                blocks.append({"type": "text", "text": part})
            elif "text" in part:
                blocks.append({"type": "text", "text": part["text"]})
            elif "inline_data" in part:
                inline = part["inline_data"]
                encoded = base64.b64encode(inline["data"]).decode("ascii")
                data_url = f"data:{inline['mime_type']};base64,{encoded}"
                if inline["mime_type"] == "application/pdf":
                    blocks.append({"type": "file", "file": {"filename": "policy.pdf", "file_data": data_url}})
                else:
                    blocks.append({"type": "image_url", "image_url": {"url": data_url}})
        return blocks

    async def generate_content(
        self,
        contents: ContentParts,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using an OpenRouter model.

        Raises:
            APIClientError: If generation fails
        """
        messages: List[Dict[str, Any]] = []
        system_text = system_instruction or ""
        generation_config = generation_config or {}

        if generation_config.get("response_mime_type") == "application/json":
            system_text = (system_text + "\n\nIMPORTANT: Respond with valid JSON only.").strip()
        if system_text:
            messages.append({"role": "system", "content": system_text})
        messages.append({"role": "user", "content": self._to_content_blocks(contents)})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": generation_config.get("temperature", 0.0),
        }
        if "max_output_tokens" in generation_config:
            payload["max_tokens"] = generation_config["max_output_tokens"]

        response = await self.client.call_api(payload=payload)

        choices = response.get("choices") or []
        if not choices:
            LOGGER.error(f"Unexpected OpenRouter response format: {response}")
            raise APIClientError("Invalid response format from OpenRouter")

        content = choices[0].get("message", {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenRouter")
        return content


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class UnifiedLLMClient:
    """Provider-agnostic client with optional Gemini fallback."""

    def __init__(self, client: Any, provider: LLMProvider, fallback_client: Optional[GeminiClient] = None):
        self.client = client
        self.provider = provider
        self.fallback_client = fallback_client

    async def generate_content(
        self,
        contents: ContentParts,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        try:
            return await self.client.generate_content(
                contents=contents,
                system_instruction=system_instruction,
                generation_config=generation_config
            )
        except APIClientError as e:
            if not self.fallback_client:
                raise
            LOGGER.warning(
                f"Primary provider ({self.provider.value}) failed, attempting Gemini fallback: {e}"
            )
            return await self.fallback_client.generate_content(
                contents=contents,
                system_instruction=system_instruction,
                generation_config=generation_config
            )


def create_llm_client(llm_settings, timeout: int = 60, max_retries: int = 1) -> UnifiedLLMClient:
    """Build the configured LLM client.

    Args:
        llm_settings: ``LLMSettings`` instance
        timeout: HTTP timeout in seconds
        max_retries: Attempts per call; the intake pipeline uses a single attempt

    Raises:
        ConfigurationError: If the provider is unknown or its key is missing
    """
    try:
        provider = LLMProvider(llm_settings.provider)
    except ValueError as e:
        raise ConfigurationError(f"Unsupported LLM provider: {llm_settings.provider}", original_error=e)

    if provider == LLMProvider.GEMINI:
        if not llm_settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for the gemini provider")
        client = GeminiClient(
            api_key=llm_settings.gemini_api_key,
            model=llm_settings.gemini_model,
            timeout=timeout,
            max_retries=max_retries,
        )
        return UnifiedLLMClient(client, provider)

    if not llm_settings.openrouter_api_key:
        raise ConfigurationError("OPENROUTER_API_KEY is required for the openrouter provider")
    client = OpenRouterClient(
        api_key=llm_settings.openrouter_api_key,
        model=llm_settings.openrouter_model,
        base_url=llm_settings.openrouter_api_url,
        timeout=timeout,
        max_retries=max_retries,
    )
    fallback = None
    if llm_settings.enable_fallback and llm_settings.gemini_api_key:
        fallback = GeminiClient(
            api_key=llm_settings.gemini_api_key,
            model=llm_settings.gemini_model,
            timeout=timeout,
            max_retries=max_retries,
        )
    return UnifiedLLMClient(client, provider, fallback_client=fallback)
