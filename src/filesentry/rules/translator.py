"""Natural-language to predicate translation via an LLM.

Only used when rules are authored, never during matching. Two wire
formats are supported over plain HTTP:

- "ollama": local Ollama server, ``POST /api/chat``
- "openai-compatible": any ``POST /chat/completions`` endpoint
"""

from __future__ import annotations

import asyncio
import json
import logging

import aiohttp
from pydantic import ValidationError

from ..config import TranslatorConfig
from ..exceptions import TranslationError
from .models import Predicate

logger = logging.getLogger("filesentry")

SYSTEM_PROMPT = """\
You are a rule parser for a file system watcher.
Convert natural language rules into structured JSON predicates.
The JSON structure must be:
{
  "path_pattern": "glob pattern (e.g. **/*.ts, src/foo.js)",
  "content_pattern": "string to match in file content (optional, regex supported if wrapped in /.../)",
  "event_type": "create" | "update" | "delete" | "move" | "any",
  "negation": boolean (true if the rule fires when the content is NOT present, usually false)
}
Return ONLY the JSON object. No markdown, no explanations.
If the rule is about "adding an import", content_pattern should match that import statement.
If the rule is "notify me when...", negation is false.
"""


def extract_json(text: str) -> dict:
    """Extract a JSON object from an LLM response string.

    Strips markdown code fences, then tries a direct parse, then the
    outermost ``{ }`` span. Raises json.JSONDecodeError if nothing parses.
    """
    text = text.strip()

    if text.startswith("```"):
        lines = text.split("\n")
        end = -1 if lines[-1].strip() == "```" else len(lines)
        text = "\n".join(lines[1:end]).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return json.loads(text[start : end + 1])

    raise json.JSONDecodeError("Could not extract JSON from LLM response", text, 0)


class PredicateTranslator:
    """Turns a sentence like "tell me when axios is imported" into a Predicate."""

    def __init__(self, config: TranslatorConfig):
        self._config = config
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _build_request(self, natural_language: str) -> tuple[str, dict, dict]:
        base_url = self._config.base_url.rstrip("/")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": natural_language},
        ]
        if self._config.provider == "ollama":
            url = f"{base_url}/api/chat"
            body = {"model": self._config.model, "messages": messages, "stream": False}
            return url, body, {}
        url = f"{base_url}/chat/completions"
        body = {"model": self._config.model, "messages": messages}
        headers = {}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return url, body, headers

    def _response_text(self, data: dict) -> str:
        if self._config.provider == "ollama":
            return data["message"]["content"]
        content = data["choices"][0]["message"]["content"]
        if content is None:
            raise ValueError("Provider returned empty content (None)")
        return content

    async def complete(self, natural_language: str) -> str:
        """Raw LLM completion text for the rule sentence."""
        url, body, headers = self._build_request(natural_language)
        session = self._get_session()
        async with session.post(url, json=body, headers=headers) as resp:
            if resp.status >= 400:
                detail = await resp.text()
                raise TranslationError(
                    f"LLM request failed: HTTP {resp.status} {detail[:200]}"
                )
            data = await resp.json(content_type=None)
        return self._response_text(data)

    async def translate(self, natural_language: str) -> Predicate:
        """Translate a rule sentence into a Predicate.

        Raises TranslationError on transport, parse, or validation failure.
        """
        logger.info(f"Parsing rule: {natural_language!r}")
        try:
            text = await self.complete(natural_language)
            return Predicate(**extract_json(text))
        except TranslationError:
            raise
        except (
            aiohttp.ClientError,
            asyncio.TimeoutError,
            json.JSONDecodeError,
            ValidationError,
            KeyError,
            IndexError,
            TypeError,
            ValueError,
        ) as e:
            logger.error(f"Failed to parse rule {natural_language!r}: {e}")
            raise TranslationError(f"Rule parsing failed: {e}") from e

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session:
            await self._session.close()
            self._session = None
