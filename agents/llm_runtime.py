from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

import httpx

from settings import SETTINGS


class LLMUnavailableError(RuntimeError):
    pass


@dataclass
class LLMResult:
    text: str
    provider: str
    model: str
    raw: Dict[str, Any]


class LLMRuntime:
    """Chat-completions client used for secondary generation passes such as compliance rewrites."""

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = "openai"
        self.model = model or SETTINGS.rewrite_model
        self.api_key = SETTINGS.openai_api_key if api_key is None else api_key
        self.base_url = (base_url or SETTINGS.openai_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or SETTINGS.llm_timeout_seconds
        self._transport = transport

    def available(self) -> bool:
        return bool(self.api_key)

    async def generate(self, system_prompt: str, user_prompt: str, temperature: float = 0.2) -> LLMResult:
        if not self.available():
            raise LLMUnavailableError("OPENAI_API_KEY is not configured")
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            resp = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()
        return LLMResult(text=self._extract_chat_completion_text(data), provider=self.provider, model=self.model, raw=data)

    async def rewrite(self, system_prompt: str, text: str) -> str:
        result = await self.generate(system_prompt, text)
        return result.text

    def _extract_chat_completion_text(self, data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") if isinstance(choices[0], dict) else {}
        content = message.get("content", "") if isinstance(message, dict) else ""
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            out: List[str] = []
            for part in content:
                if isinstance(part, dict) and "text" in part:
                    out.append(str(part.get("text", "")))
            return "\n".join(t for t in out if t).strip()
        return str(content or "").strip()
