"""OpenAI-compatible chat completion client used to write prose reports."""

import logging

import httpx

from .config import LLMConfig
from .errors import LLMError

logger = logging.getLogger(__name__)

PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
}


class LLMClient:
    """Client for chat-completion endpoints speaking the OpenAI wire format.

    OpenAI, DeepSeek and self-hosted ("custom") backends share the same
    request and response shape; only the base URL and model differ.
    """

    def __init__(
        self,
        config: LLMConfig,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config
        self.timeout = timeout
        self.transport = transport
        self.base_url = (config.base_url or PROVIDER_BASE_URLS.get(config.provider, "")).rstrip("/")
        if not self.base_url:
            raise LLMError(f"No base_url configured for LLM provider {config.provider}")

    def generate_report(self, activity_data: str, username: str) -> str:
        """Turn formatted activity data into a prose report.

        Args:
            activity_data: JSON activity data from ``format_activity_data``
            username: GitHub username the report is about

        Returns:
            The generated report text
        """
        system_prompt = self.config.prompt_template.replace("{username}", username)
        return self.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": activity_data},
            ]
        )

    def complete(self, messages: list[dict]) -> str:
        """Send a chat completion request and return the first choice.

        Raises:
            LLMError: On transport errors, HTTP errors, API errors or an
                empty choice list
        """
        url = f"{self.base_url}/chat/completions"
        body = {"model": self.config.model, "messages": messages}
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }

        logger.debug(f"LLM API: POST {url} (model: {self.config.model})")
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise LLMError(f"Failed to send request: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(
                f"LLM API returned status {response.status_code} with a non-JSON body"
            ) from e

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise LLMError(f"LLM API error: {message}")

        if response.status_code != 200:
            raise LLMError(f"LLM API returned status {response.status_code}")

        choices = data.get("choices") or []
        if not choices:
            raise LLMError("No choices in response")

        content = (choices[0].get("message") or {}).get("content") or ""
        logger.debug(f"LLM API: received {len(content)} characters")
        return content
