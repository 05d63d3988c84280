"""
LLM Client
==========

Supports any OpenAI-compatible `/chat/completions` endpoint:
- OpenAI (default)
- OpenRouter

Used for:
- Daily briefings (with deterministic fallback)
- CSV summaries, text interpretation, image explanation, glossary

Every call is bounded by a timeout. LLM output is treated as untrusted:
`generate_json` returns an `LLMJSONResult` that is either a parsed dict or a
failure, and callers validate field shapes themselves.
"""

import json
import logging
import hashlib
import asyncio
from typing import List, Optional, Dict, Any, Tuple
from dataclasses import dataclass, field

import httpx

from .config import get_settings
from .schemas import LLMMode

logger = logging.getLogger(__name__)


# =============================================================================
# Robust JSON Parser
# =============================================================================

def parse_json_robust(content: str) -> Tuple[Optional[Dict], bool, str]:
    """
    Parse JSON content robustly, handling common LLM output issues.

    Handles:
    - Empty content
    - Markdown code blocks (```json...```)
    - Prefix text before JSON
    - Multiple JSON objects (takes largest)
    - Trailing text after JSON

    Args:
        content: Raw content from LLM

    Returns:
        Tuple of (parsed_dict, success, error_message)
    """
    if not content:
        return None, False, "Empty content"

    content = content.strip()

    # Step 1: Remove markdown code blocks
    if "```json" in content:
        start = content.find("```json") + 7
        end = content.find("```", start)
        if end > start:
            content = content[start:end].strip()
    elif "```" in content:
        start = content.find("```") + 3
        end = content.find("```", start)
        if end > start:
            content = content[start:end].strip()

    # Step 2: Try direct parsing
    if content:
        try:
            data = json.loads(content)
            if isinstance(data, dict):
                return data, True, ""
        except json.JSONDecodeError:
            pass

    # Step 3: Find largest {...} block
    brace_blocks = []
    depth = 0
    start_idx = None

    for i, char in enumerate(content):
        if char == '{':
            if depth == 0:
                start_idx = i
            depth += 1
        elif char == '}' and depth > 0:
            depth -= 1
            if depth == 0 and start_idx is not None:
                brace_blocks.append(content[start_idx:i + 1])
                start_idx = None

    for block in sorted(brace_blocks, key=len, reverse=True):
        try:
            data = json.loads(block)
            return data, True, ""
        except json.JSONDecodeError:
            continue

    return None, False, "No JSON object found in content"


def safe_log_content(content: str, max_chars: int = 120) -> str:
    """
    Create a safe log representation of content.

    Returns a string with length, hash prefix and a truncated preview.
    """
    if not content:
        return "(empty)"

    content_hash = hashlib.sha256(content.encode()).hexdigest()[:12]
    preview = content[:max_chars].replace('\n', ' ')

    return f"len={len(content)} hash={content_hash} preview='{preview}...'"


@dataclass
class LLMResponse:
    """Response from LLM"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    raw_response: Optional[Dict] = None


@dataclass
class LLMJSONResult:
    """Parsed JSON payload, or the reason there isn't one"""
    data: Optional[Dict[str, Any]] = None
    parse_ok: bool = False
    empty_response: bool = False
    timed_out: bool = False
    retried: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.parse_ok and self.data is not None


class LLMClient:
    """
    Client for OpenAI-compatible chat completion APIs.

    Usage:
        client = LLMClient()
        response = await client.generate("Summarize these tasks...")
    """

    def __init__(self):
        self.settings = get_settings()
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=max(self.settings.llm_timeout, self.settings.vision_timeout)
            )
        return self._http_client

    async def close(self):
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _endpoint(self, vision: bool) -> Tuple[Optional[str], str, str]:
        """(api_key, base_url, model) for the active provider"""
        s = self.settings
        if s.llm_mode == LLMMode.OPENROUTER:
            model = s.openrouter_vision_model if vision else s.openrouter_model
            return s.openrouter_api_key, s.openrouter_base_url, model
        model = s.openai_vision_model if vision else s.openai_model
        return s.openai_api_key, s.openai_base_url, model

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        image_url: Optional[str] = None,
    ) -> Optional[LLMResponse]:
        """
        Generate response from LLM.

        Args:
            prompt: User prompt
            system_prompt: System prompt (optional)
            json_mode: Request JSON response
            max_tokens: Maximum tokens
            temperature: Sampling temperature
            image_url: data: URL of an image; switches to the vision model

        Returns:
            LLMResponse or None if failed
        """
        if self.settings.llm_mode == LLMMode.NONE:
            logger.debug("LLM mode is NONE, skipping")
            return None

        api_key, base_url, model = self._endpoint(vision=image_url is not None)
        if not api_key:
            logger.warning(f"{self.settings.llm_mode.value} API key not set")
            return None

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        if image_url:
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            })
        else:
            messages.append({"role": "user", "content": prompt})

        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if self.settings.llm_mode == LLMMode.OPENROUTER:
            headers["X-Title"] = "AstraSemi Assistant"

        client = await self._get_client()

        try:
            response = await client.post(
                f"{base_url}/chat/completions",
                json=payload,
                headers=headers
            )
            response.raise_for_status()
            data = response.json()

            try:
                content = data["choices"][0]["message"]["content"]
            except (KeyError, IndexError, TypeError) as e:
                logger.error(f"LLM response missing content: {e}")
                return None

            if content is None:
                logger.warning("LLM returned null content")
                content = ""

            usage = data.get("usage") or {}

            return LLMResponse(
                content=content,
                model=model,
                usage={
                    "input_tokens": usage.get("prompt_tokens", 0),
                    "output_tokens": usage.get("completion_tokens", 0)
                },
                raw_response=data
            )

        except httpx.HTTPStatusError as e:
            logger.error(f"LLM API error: {e.response.status_code} - {safe_log_content(e.response.text)}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"LLM request failed: {e}")
            return None


# Singleton
_llm_client: Optional[LLMClient] = None

def get_llm_client() -> LLMClient:
    """Get singleton LLM client"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


# Retry instruction appended to the system prompt after a parse failure
JSON_RETRY_PROMPT = """Return valid JSON only. A single JSON object with exactly the requested keys.
No prose, no markdown, no explanations."""


async def generate_json(
    prompt: str,
    system_prompt: str,
    timeout: float,
    max_tokens: int = 1024,
    temperature: float = 0.3,
    image_url: Optional[str] = None,
    retry: bool = True,
) -> LLMJSONResult:
    """
    Ask the LLM for a JSON object, retrying once with a stricter instruction.

    Each attempt is bounded by `timeout` seconds. Never raises for LLM-side
    failures; inspect `result.ok`.
    """
    client = get_llm_client()
    result = LLMJSONResult()

    attempts = [system_prompt]
    if retry:
        attempts.append(f"{system_prompt}\n\n{JSON_RETRY_PROMPT}")

    for attempt, system in enumerate(attempts):
        if attempt:
            result.retried = True
            logger.warning(f"LLM parse failed ({result.error}), retrying with strict JSON instruction")

        try:
            response = await asyncio.wait_for(
                client.generate(
                    prompt=prompt,
                    system_prompt=system,
                    json_mode=True,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    image_url=image_url,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"LLM call timed out after {timeout}s")
            result.timed_out = True
            result.error = "timeout"
            return result

        if not response:
            result.error = "no response"
            return result

        content = response.content
        if content is None or not content.strip():
            logger.warning("LLM returned empty or null content")
            result.empty_response = True
            result.error = "empty response"
            continue

        logger.debug(f"LLM response: {safe_log_content(content)}")

        data, parse_ok, error_msg = parse_json_robust(content)
        if parse_ok and isinstance(data, dict):
            result.data = data
            result.parse_ok = True
            result.error = ""
            return result

        result.error = error_msg or "not a JSON object"

    logger.error(f"LLM JSON parse failed after retry: {result.error}")
    return result


def string_list(value: Any, limit: Optional[int] = None) -> List[str]:
    """Coerce an LLM field into a list of non-empty strings"""
    if not isinstance(value, list):
        return []
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return items[:limit] if limit is not None else items


def string_field(value: Any, default: str) -> str:
    """Coerce an LLM field into a non-empty string"""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default
