"""Grammar/improvement/question oracle backed by Gemini.

Every call is bounded by a timeout and fails open: the caller always gets a
usable answer, never an exception. Cache reads and writes run in the same
worker thread as the model call, so a stalled Redis is cut off by the deadline too.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from app.core.config import settings
from app.core.prompts import (
    DEFAULT_FILL_BLANK,
    DEFAULT_INITIAL_QUESTION,
    DEFAULT_NEXT_QUESTION,
    GRAMMAR_CHECK_INSTRUCTION,
    IMPROVEMENT_INSTRUCTION,
    clean_generated_text,
    fill_blank_instruction,
    fill_blank_prompt,
    improvement_prompt,
    initial_question_instruction,
    next_question_instruction,
    next_question_prompt,
    parse_fill_blank,
    parse_grammar_verdict,
)
from app.services import cache

logger = logging.getLogger(__name__)


@dataclass
class GrammarVerdict:
    is_correct: bool
    error: Optional[str] = None
    correction: Optional[str] = None
    fallback: bool = False  # True when the oracle was unavailable and the verdict is the fail-open default


def _build_http_options(timeout_seconds: float, max_retries: int):
    """HttpOptions with request timeout and transport retry attempts. Returns None if types not found."""
    HttpOptions = getattr(types, "HttpOptions", None)
    if HttpOptions is None:
        return None
    timeout_ms = int(timeout_seconds * 1000)
    HttpRetryOptions = getattr(types, "HttpRetryOptions", None)
    if HttpRetryOptions is not None:
        try:
            # attempts counts the first request too
            return HttpOptions(
                timeout=timeout_ms,
                retry_options=HttpRetryOptions(attempts=max(1, max_retries + 1)),
            )
        except (TypeError, ValueError):
            pass
    return HttpOptions(timeout=timeout_ms)


def _response_text(response) -> str:
    """Join the text parts of the first candidate. Raises ValueError if there are none."""
    if (
        response.candidates is None
        or len(response.candidates) == 0
        or response.candidates[0].content is None
        or not response.candidates[0].content.parts
    ):
        raise ValueError("No response content from Gemini")
    candidate = response.candidates[0]
    finish_reason = str(getattr(candidate, "finish_reason", None) or "UNKNOWN")
    if "SAFETY" in finish_reason or "RECITATION" in finish_reason:
        logger.warning(f"Oracle response blocked by filters: {finish_reason}")
    parts = [part.text for part in candidate.content.parts if getattr(part, "text", None)]
    if not parts:
        raise ValueError("No text content in Gemini response parts")
    return " ".join(parts)


class GeminiOracle:
    """Thin request/response client. Construct once and share; it holds no session state."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.llm_model
        self.timeout_seconds = float(timeout_seconds if timeout_seconds is not None else settings.oracle_timeout_seconds)
        self.max_retries = settings.oracle_max_retries if max_retries is None else max_retries
        self._client = None

    def _get_client(self):
        """Lazy load the Gemini client. The client is stateless (HTTP), no lock needed."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("Gemini API key not configured. Please set GEMINI_API_KEY in environment.")
            http_options = _build_http_options(self.timeout_seconds, self.max_retries)
            if http_options is not None:
                self._client = genai.Client(api_key=self.api_key, http_options=http_options)
            else:
                self._client = genai.Client(api_key=self.api_key)
            logger.info("Gemini oracle client initialized (model=%s, timeout=%ss)", self.model, self.timeout_seconds)
        return self._client

    def _generate_text(
        self,
        system_instruction: str,
        prompt: str,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        """Blocking Gemini call; run in a worker thread."""
        client = self._get_client()
        config_dict = {
            "thinking_config": types.ThinkingConfig(thinking_budget=0),
            "system_instruction": system_instruction,
            "max_output_tokens": settings.llm_max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            config_dict["response_mime_type"] = "application/json"
        response = client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(**config_dict),
        )
        return _response_text(response)

    async def _run(self, fn, *args):
        """Run blocking work (cache and SDK I/O) in a worker thread under the call deadline."""
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout_seconds)

    async def _call(self, system_instruction: str, prompt: str, temperature: float, json_mode: bool = False) -> str:
        return await self._run(self._generate_text, system_instruction, prompt, temperature, json_mode)

    def _grade_sync(self, sentence: str) -> Dict[str, Any]:
        key = cache.cache_key("grammar", sentence)
        cached = cache.get_json(key)
        if cached and "is_correct" in cached:
            return cached
        parsed = parse_grammar_verdict(self._generate_text(GRAMMAR_CHECK_INSTRUCTION, sentence, 0.3, True))
        cache.set_json(key, parsed)
        return parsed

    def _improve_sync(self, sentence: str) -> str:
        key = cache.cache_key("improvement", sentence)
        cached = cache.get_json(key)
        if cached and cached.get("text"):
            return cached["text"]
        text = clean_generated_text(
            self._generate_text(IMPROVEMENT_INSTRUCTION, improvement_prompt(sentence), settings.llm_temperature)
        )
        if text:
            cache.set_json(key, {"text": text})
        return text

    async def check_grammar(self, sentence: str) -> GrammarVerdict:
        try:
            parsed = await self._run(self._grade_sync, sentence)
        except asyncio.TimeoutError:
            logger.warning("Grammar check timed out after %ss; failing open", self.timeout_seconds)
            return GrammarVerdict(is_correct=True, fallback=True)
        except Exception as e:
            logger.error(f"Grammar check failed; failing open: {e}", exc_info=True)
            return GrammarVerdict(is_correct=True, fallback=True)
        return GrammarVerdict(
            is_correct=bool(parsed["is_correct"]),
            error=parsed.get("error"),
            correction=parsed.get("correction"),
        )

    async def generate_improvement(self, sentence: str) -> str:
        try:
            text = await self._run(self._improve_sync, sentence)
        except asyncio.TimeoutError:
            logger.warning("Improvement generation timed out; returning original sentence")
            return sentence
        except Exception as e:
            logger.error(f"Improvement generation failed: {e}", exc_info=True)
            return sentence
        return text or sentence

    async def generate_fill_blank(self, topic: str) -> Dict[str, str]:
        """One fill-in-the-blank exercise on `topic`; the default exercise on any failure."""
        try:
            raw = await self._call(fill_blank_instruction(topic), fill_blank_prompt(topic), settings.llm_temperature, True)
            return parse_fill_blank(raw)
        except asyncio.TimeoutError:
            logger.warning("Fill-in-the-blank generation timed out; using default exercise")
        except Exception as e:
            logger.error(f"Fill-in-the-blank generation failed: {e}", exc_info=True)
        return dict(DEFAULT_FILL_BLANK)

    async def generate_next_question(self, topic: str, prior_turns: List[str]) -> str:
        try:
            text = clean_generated_text(
                await self._call(next_question_instruction(topic), next_question_prompt(prior_turns), 0.8)
            )
        except asyncio.TimeoutError:
            logger.warning("Next question generation timed out; using default prompt")
            return DEFAULT_NEXT_QUESTION
        except Exception as e:
            logger.error(f"Next question generation failed: {e}", exc_info=True)
            return DEFAULT_NEXT_QUESTION
        return text or DEFAULT_NEXT_QUESTION

    async def generate_initial_question(self, topic: str) -> str:
        try:
            text = clean_generated_text(
                await self._call(initial_question_instruction(topic), f"Create an opening question about: {topic}", 0.8)
            )
        except asyncio.TimeoutError:
            logger.warning("Initial question generation timed out; using default prompt")
            return DEFAULT_INITIAL_QUESTION
        except Exception as e:
            logger.error(f"Initial question generation failed: {e}", exc_info=True)
            return DEFAULT_INITIAL_QUESTION
        return text or DEFAULT_INITIAL_QUESTION
