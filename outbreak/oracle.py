"""Decision oracle client: one text prompt in, raw completion text out.

Remote providers go through Mirascope's ``llm.call`` decorator. The local
provider talks to an Ollama server's ``/api/generate`` endpoint over plain HTTP,
running the blocking request in a worker thread. Every round-trip is bounded by
a fixed timeout; any failure surfaces as ``OracleError``.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable
from urllib import error, request

from mirascope import llm

from outbreak.config import Config, LOCAL_PROVIDERS
from outbreak.errors import OracleError
from outbreak.logging_utils import LOG_TAG_ORACLE, log_oracle

_GENERATE_ENDPOINT = "/api/generate"

# Providers whose Mirascope call params accept temperature/max_tokens directly
_TUNABLE_PROVIDERS = ("openai", "anthropic", "groq", "mistral")


def _perform_generate_request(
    payload: dict[str, Any],
    base_url: str,
    timeout: float,
) -> str:
    """Execute the blocking HTTP request against the Ollama generate API."""

    url = f"{base_url.rstrip('/')}{_GENERATE_ENDPOINT}"
    data = json.dumps(payload).encode("utf-8")
    req = request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )

    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        message = body or exc.reason
        raise OracleError(
            f"Ollama generate request failed with status {exc.code}: {message}"
        ) from exc
    except error.URLError as exc:
        raise OracleError(f"Could not reach Ollama at {url}: {exc.reason}") from exc
    except TimeoutError as exc:
        raise OracleError(f"Ollama request to {url} timed out after {timeout:g}s") from exc

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise OracleError("Ollama returned non-JSON response.") from exc

    completion = parsed.get("response")
    if not completion:
        raise OracleError("Ollama response did not include a completion.")

    return completion


async def call_ollama_generate(
    prompt: str,
    *,
    model: str,
    base_url: str | None = None,
    temperature: float = 0.2,
    max_tokens: int = 500,
    timeout: float = 30.0,
) -> str:
    """Invoke a local Ollama model and return the completion text."""

    prompt = prompt.strip()
    if not prompt:
        raise OracleError("Cannot call Ollama with an empty prompt.")

    payload = {
        "model": model,
        "prompt": prompt,
        "stream": False,
        "options": {"temperature": temperature, "num_predict": max_tokens},
    }

    return await asyncio.to_thread(
        _perform_generate_request,
        payload,
        (base_url or Config.OLLAMA_BASE_URL).rstrip("/"),
        timeout,
    )


class DecisionOracleClient:
    """Sends rendered prompts to the configured provider.

    The client is stateless apart from its settings, so a single instance can
    serve every agent's concurrent request within a tick.
    """

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        *,
        timeout: float | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        debug: bool | None = None,
    ) -> None:
        self.provider = (provider or Config.ORACLE_PROVIDER).lower()
        self.model = model or Config.ORACLE_MODEL
        self.timeout = timeout if timeout is not None else Config.ORACLE_TIMEOUT_SECONDS
        self.base_url = base_url or Config.OLLAMA_BASE_URL
        self.temperature = temperature if temperature is not None else Config.ORACLE_TEMPERATURE
        self.max_tokens = max_tokens if max_tokens is not None else Config.ORACLE_MAX_TOKENS
        self.debug = Config.DEBUG_ORACLE if debug is None else debug
        self._remote_invoke: Callable[[str], Any] | None = None

    @property
    def is_local(self) -> bool:
        return self.provider in LOCAL_PROVIDERS

    def _remote(self) -> Callable[[str], Any]:
        if self._remote_invoke is None:
            options: dict[str, Any] = {"provider": self.provider, "model": self.model}
            if self.provider in _TUNABLE_PROVIDERS:
                options["call_params"] = {
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                }

            @llm.call(**options)
            async def _invoke(prompt: str) -> str:
                return prompt

            self._remote_invoke = _invoke
        return self._remote_invoke

    async def _complete(self, prompt: str) -> str:
        if self.is_local:
            return await call_ollama_generate(
                prompt,
                model=self.model,
                base_url=self.base_url,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
            )
        response = await self._remote()(prompt)
        return getattr(response, "content", response)

    async def generate(self, prompt: str) -> str:
        """Return the raw completion for ``prompt``.

        Raises:
            OracleError: on timeout, transport failure or an empty completion.
        """

        if self.debug:
            log_oracle(f"{LOG_TAG_ORACLE} Prompt for {self.provider}/{self.model}:\n{prompt}")

        try:
            completion = await asyncio.wait_for(self._complete(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise OracleError(
                f"Oracle request to {self.provider}/{self.model} timed out after {self.timeout:g}s"
            ) from exc
        except OracleError:
            raise
        except Exception as exc:
            # Provider SDK errors vary by backend; normalise them for the clock
            raise OracleError(f"Oracle provider error ({self.provider}): {exc}") from exc

        if not isinstance(completion, str) or not completion.strip():
            raise OracleError(f"Oracle {self.provider}/{self.model} returned an empty completion")

        if self.debug:
            log_oracle(f"{LOG_TAG_ORACLE} Raw completion:\n{completion}")
        return completion

    def __repr__(self) -> str:
        return f"DecisionOracleClient(provider={self.provider!r}, model={self.model!r})"


__all__ = ["DecisionOracleClient", "call_ollama_generate"]
