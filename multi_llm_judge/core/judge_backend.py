"""Judge model invocation over Hugging Face inference.

Two interfaces are exposed: free-form text generation (primary) and
turn-based chat completion (fallback). Both raise ``JudgeInvocationError``
on any fault so the evaluator can decide what to do next.
"""

from __future__ import annotations

import os
from typing import Any, Protocol, Union

import httpx
import openai
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .errors import JudgeInvocationError
from .llm_task_config import JudgeSettings
from .normalizer import vendor_error_message


class JudgeBackend(Protocol):
    async def text_generation(self, prompt: str) -> str: ...

    async def chat_completion(self, system: str, user: str) -> str: ...


def _model_loading(exc: BaseException) -> bool:
    # HF answers 503 while a cold model is being loaded
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 503


def normalize_generated_text(res: Any) -> str:
    if isinstance(res, dict) and "generated_text" in res:
        return str(res["generated_text"])
    if isinstance(res, list) and res and isinstance(res[0], dict) and res[0].get("generated_text"):
        return str(res[0]["generated_text"])
    return "" if res is None else str(res)


def normalize_chat_content(content: Union[str, list, None]) -> str:
    if isinstance(content, list):
        return "\n".join(
            str(part.get("text", part)) if isinstance(part, dict) else str(part)
            for part in content
        )
    return "" if content is None else str(content)


def _proxy() -> Union[str, None]:
    return os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")


class HuggingFaceJudgeBackend:
    def __init__(
        self,
        settings: JudgeSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.transport = transport

    def _require_config(self) -> None:
        status = self.settings.validate()
        if not status.is_valid:
            raise JudgeInvocationError(
                f"Judge model not configured: missing {', '.join(status.missing)}",
                unavailable=True,
            )

    def _client(self) -> httpx.AsyncClient:
        timeout = self.settings.timeout_ms / 1000
        if self.transport is not None:
            return httpx.AsyncClient(transport=self.transport, timeout=timeout)
        proxy = _proxy()
        if proxy:
            return httpx.AsyncClient(proxy=proxy, timeout=timeout)
        return httpx.AsyncClient(timeout=timeout)

    async def text_generation(self, prompt: str) -> str:
        self._require_config()
        url = self.settings.text_generation_url.format(model=self.settings.model_id)
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": self.settings.max_new_tokens,
                "temperature": self.settings.temperature,
                "top_p": self.settings.top_p,
                "do_sample": True,
                "return_full_text": False,
            },
        }
        headers = {"Authorization": f"Bearer {self.settings.api_token}"}
        try:
            async with self._client() as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(3),
                    wait=wait_exponential(min=1, max=4),
                    retry=retry_if_exception(_model_loading),
                    reraise=True,
                ):
                    with attempt:
                        resp = await client.post(url, json=payload, headers=headers)
                        resp.raise_for_status()
            return normalize_generated_text(resp.json())
        except httpx.HTTPStatusError as e:
            raise JudgeInvocationError(vendor_error_message(e.response)) from e
        except httpx.TransportError as e:
            raise JudgeInvocationError(
                f"Failed to fetch inference provider for '{self.settings.model_id}': {e}",
                unavailable=True,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise JudgeInvocationError(
                f"Unreadable text generation reply from '{self.settings.model_id}': {e}"
            ) from e

    async def chat_completion(self, system: str, user: str) -> str:
        self._require_config()
        proxy = _proxy()
        http_client = None
        if self.transport is not None:
            http_client = httpx.AsyncClient(transport=self.transport)
        elif proxy:
            http_client = httpx.AsyncClient(proxy=proxy)
        try:
            async with openai.AsyncOpenAI(
                api_key=self.settings.api_token,
                base_url=self.settings.chat_base_url,
                http_client=http_client,
                timeout=self.settings.timeout_ms / 1000,
                max_retries=0,
            ) as client:
                response = await client.chat.completions.create(
                    model=self.settings.model_id,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    max_tokens=self.settings.max_new_tokens,
                    temperature=self.settings.temperature,
                )
        except openai.OpenAIError as e:
            raise JudgeInvocationError(
                str(e), unavailable=isinstance(e, openai.APIConnectionError)
            ) from e
        if not response.choices:
            return ""
        return normalize_chat_content(response.choices[0].message.content)
