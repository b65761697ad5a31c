"""
Text generation service used by the comment pipeline.
"""

import os
import re
import asyncio
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)


# --------------- LLM Error helpers ---------------
LLM_ERROR_PREFIX = "__LLM_ERR__"
RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def _llm_error(error_type: str, detail: str = "") -> str:
    """Return a sentinel string indicating an LLM call failure."""
    return f"{LLM_ERROR_PREFIX}{error_type}|{detail}"


def is_llm_error(content: str) -> bool:
    return bool(content) and content.startswith(LLM_ERROR_PREFIX)


def parse_llm_error(content: str) -> dict:
    """Parse an LLM error sentinel into {type, detail}."""
    if not is_llm_error(content):
        return {}
    rest = content[len(LLM_ERROR_PREFIX):]
    parts = rest.split("|", 1)
    return {"type": parts[0], "detail": parts[1] if len(parts) > 1 else ""}


class TextGenerationError(RuntimeError):
    """Text generation was unavailable for a stage that cannot do without it."""

    def __init__(self, stage: str, detail: str = ""):
        self.stage = stage
        self.detail = detail
        super().__init__(f"text generation failed during {stage}: {detail}" if detail else f"text generation failed during {stage}")


def ensure_generated(content: str, stage: str) -> str:
    """Return ``content`` or raise ``TextGenerationError`` if it is an error sentinel."""
    if is_llm_error(content):
        err = parse_llm_error(content)
        raise TextGenerationError(stage, f"{err.get('type')}: {err.get('detail')}".strip(": "))
    return content


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class LLMConfig(BaseModel):
    """Model runtime configuration."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str = "gpt-4o-mini"
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    provider: Optional[str] = None  # openai | groq | ollama | generic
    temperature: float = 0.7
    max_tokens: int = 600
    top_p: float = 0.9
    timeout_sec: float = 60.0


def load_llm_config() -> LLMConfig:
    return LLMConfig(
        api_url=os.getenv("LLM_API_URL", "https://api.openai.com/v1/chat/completions"),
        api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
        model_name=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        provider=os.getenv("LLM_PROVIDER"),
        temperature=_env_float("LLM_TEMPERATURE", 0.7),
        max_tokens=_env_int("LLM_MAX_TOKENS", 600),
        timeout_sec=_env_float("LLM_TIMEOUT_SEC", 60.0),
    )


class LLMService:
    """Single-turn prompt to text over HTTP."""

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or load_llm_config()
        self.call_log_path = os.getenv("LLM_CALL_LOG", "llm_call_log.txt")
        self.max_retry_attempts = max(1, min(6, _env_int("LLM_MAX_RETRY_ATTEMPTS", 3)))
        self.retry_backoff_base_sec = max(0.5, min(5.0, _env_float("LLM_RETRY_BACKOFF_BASE_SEC", 1.5)))
        self.rate_limit_cooldown_sec = max(1.0, min(60.0, _env_float("LLM_RATE_LIMIT_COOLDOWN_SEC", 3.0)))
        self._rate_limited_until_ts = 0.0
        self._throttle_lock = asyncio.Lock()
        self._last_call_ts = 0.0
        self._min_call_interval = max(0.0, _env_float("LLM_MIN_CALL_INTERVAL_SEC", 0.0))

    def _append_call_log(self, stage: str, status: str, detail: str = "") -> None:
        try:
            p = Path(__file__).resolve().parent / self.call_log_path
            p.parent.mkdir(parents=True, exist_ok=True)
            ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
            line = f"[{ts}] stage={stage} status={status} model={self.config.model_name} detail={detail}\n"
            with open(p, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError:
            # Logging must never block generation path.
            pass

    @staticmethod
    def _parse_retry_after(response: httpx.Response) -> float:
        """Extract wait time from rate-limit headers."""
        ra = response.headers.get("retry-after", "")
        if ra:
            try:
                return float(ra)
            except ValueError:
                pass
        # x-ratelimit-reset-* looks like "1m26.4s", "305ms", "6.5s"
        for hdr in ("x-ratelimit-reset-tokens", "x-ratelimit-reset-requests"):
            val = response.headers.get(hdr, "")
            if not val:
                continue
            total = 0.0
            m = re.search(r"(\d+)m(?!s)", val)
            if m:
                total += int(m.group(1)) * 60
            ms = re.search(r"(\d+)ms", val)
            if ms:
                total += int(ms.group(1)) / 1000.0
            s = re.search(r"(?<!m)([\d.]+)s\b", val)
            if s:
                try:
                    total += float(s.group(1))
                except ValueError:
                    pass
            if total > 0:
                return total
        return 2.0

    def _is_openai_compatible(self) -> bool:
        provider = (self.config.provider or "").lower().strip()
        api_url = self.config.api_url or ""
        return (
            provider in ("groq", "openai")
            or "/chat/completions" in api_url
            or "api.groq.com/openai/v1" in api_url
            or "api.openai.com/v1" in api_url
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate text from the configured provider.

        Returns the stripped completion, or an ``__LLM_ERR__`` sentinel when the
        provider could not be reached or kept failing.
        """
        temp = self.config.temperature if temperature is None else temperature
        token_limit = self.config.max_tokens if max_tokens is None else max_tokens

        await self._wait_for_slot()
        try:
            if self._is_openai_compatible():
                return await self._generate_chat(prompt, system_prompt, temp, token_limit)
            return await self._generate_plain(prompt, system_prompt, temp, token_limit)
        except (httpx.HTTPError, ValueError) as exc:
            self._append_call_log("request", "error", str(exc))
            print(f"LLM API error: {exc}")
            return _llm_error("exception", str(exc)[:200])

    async def _wait_for_slot(self) -> None:
        """Reserve the next start time under the lock, then sleep until it outside the lock.

        Only call starts are spaced; the HTTP exchange itself runs unlocked so
        concurrent comments overlap.
        """
        async with self._throttle_lock:
            now_ts = time.time()
            start_ts = max(now_ts, self._last_call_ts + self._min_call_interval)
            if start_ts < self._rate_limited_until_ts:
                wait_left = round(self._rate_limited_until_ts - now_ts, 2)
                self._append_call_log("request", "wait", f"rate_limit_cooldown wait_sec={wait_left}")
                start_ts = self._rate_limited_until_ts
            self._last_call_ts = start_ts
        delay = start_ts - time.time()
        if delay > 0:
            await asyncio.sleep(delay)

    def _backoff_for(self, response: httpx.Response, attempt: int) -> float:
        if response.status_code == 429:
            return max(self._parse_retry_after(response), self.retry_backoff_base_sec * (2 ** attempt))
        return self.retry_backoff_base_sec * (attempt + 1)

    async def _post_with_retry(self, payload: dict, headers: dict, extract: Callable[[object], str]) -> str:
        """POST ``payload``; retry 429/5xx with backoff; return extracted text or a sentinel."""
        async with httpx.AsyncClient(timeout=self.config.timeout_sec) as client:
            for attempt in range(self.max_retry_attempts):
                response = await client.post(self.config.api_url or "", json=payload, headers=headers)
                if response.status_code == 200:
                    self._append_call_log("request", "ok", f"attempt={attempt+1} http=200")
                    self._rate_limited_until_ts = 0.0
                    return extract(response.json())
                if response.status_code in RETRYABLE_STATUS and attempt < self.max_retry_attempts - 1:
                    backoff = self._backoff_for(response, attempt)
                    self._append_call_log(
                        "request", "retry", f"attempt={attempt+1} http={response.status_code} backoff={backoff:.1f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue
                return self._final_failure(response, attempt)
        return _llm_error("http_error", "no attempts made")

    async def _generate_chat(self, prompt: str, system_prompt: Optional[str], temp: float, token_limit: int) -> str:
        self._append_call_log("request", "start", "provider=openai_compatible")
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self.config.model_name,
            "messages": messages,
            "temperature": temp,
            "max_tokens": token_limit,
            "top_p": self.config.top_p,
        }
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return await self._post_with_retry(payload, headers, _chat_content)

    async def _generate_plain(self, prompt: str, system_prompt: Optional[str], temp: float, token_limit: int) -> str:
        self._append_call_log("request", "start", "provider=generic")
        full_prompt = f"{system_prompt}\n\nUser: {prompt}\n\nAssistant:" if system_prompt else prompt
        payload = {
            "model": self.config.model_name,
            "prompt": full_prompt,
            "stream": False,
            "options": {"temperature": temp, "num_predict": token_limit, "top_p": self.config.top_p},
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"} if self.config.api_key else {}
        return await self._post_with_retry(payload, headers, _plain_content)

    def _final_failure(self, response: httpx.Response, attempt: int) -> str:
        self._append_call_log("request", "fail", f"attempt={attempt+1} http={response.status_code}")
        if response.status_code == 429:
            retry_after = self._parse_retry_after(response)
            self._rate_limited_until_ts = time.time() + max(self.rate_limit_cooldown_sec, retry_after)
            return _llm_error("rate_limit", f"http=429 after {attempt+1} attempts")
        return _llm_error("http_error", f"http={response.status_code}")


def _chat_content(body: object) -> str:
    choices = body.get("choices") if isinstance(body, dict) else None
    if not choices:
        return ""
    return (choices[0].get("message", {}).get("content") or "").strip()


def _plain_content(body: object) -> str:
    if isinstance(body, dict):
        return (body.get("response") or "").strip()
    return str(body).strip()
