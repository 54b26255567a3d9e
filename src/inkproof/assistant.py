"""AI completion provider interface.

The provider is an external collaborator. It returns completion text tagged
with the model that produced it, or fails with ``ProviderError``; on failure
nothing is inserted and nothing is logged.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from inkproof.config import DEFAULT_AI_ENDPOINT, DEFAULT_AI_MODEL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60  # seconds
DEFAULT_MAX_TOKENS = 1000


class ProviderError(Exception):
    """Completion request failed (network, auth, or bad response)."""
    pass


@dataclass(frozen=True)
class Completion:
    """Completion text and the model identifier used as its source."""

    text: str
    model: str
    token_count: int | None = None


class CompletionProvider(Protocol):
    def complete(self, prompt: str) -> Completion: ...


class OpenAIProvider:
    """Chat-completions client over plain HTTPS.

    Reads the API key from ``OPENAI_API_KEY`` unless one is given.
    """

    def __init__(
        self,
        model: str = DEFAULT_AI_MODEL,
        endpoint: str = DEFAULT_AI_ENDPOINT,
        api_key: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.model = model
        self.endpoint = endpoint
        self._api_key = api_key
        self.max_tokens = max_tokens
        self.timeout = timeout

    def complete(self, prompt: str) -> Completion:
        """Request a completion.

        Raises:
            ProviderError: On empty prompt, missing key, HTTP or parse failure
        """
        if not prompt.strip():
            raise ProviderError("Prompt cannot be empty")

        api_key = self._api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ProviderError("OPENAI_API_KEY environment variable not set")

        body = json.dumps({
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": 0.7,
        }).encode("utf-8")
        request = Request(
            self.endpoint,
            data=body,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )

        try:
            with urlopen(request, timeout=self.timeout) as response:
                data = json.loads(response.read().decode("utf-8"))
        except HTTPError as e:
            raise ProviderError(f"API error {e.code}: {e.reason}") from e
        except URLError as e:
            raise ProviderError(f"API request failed: {e.reason}") from e
        except (TimeoutError, ValueError) as e:
            raise ProviderError(f"API request failed: {e}") from e

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("Unexpected completion response shape") from e

        usage = data.get("usage") or {}
        logger.info("completion from %s (%d chars)", self.model, len(text))
        return Completion(text=text, model=data.get("model") or self.model, token_count=usage.get("total_tokens"))
