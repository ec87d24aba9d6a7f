"""Prompt templates and response parsing for the writing oracle."""
import json
import re
from typing import Any, Dict, List, Optional

GRAMMAR_CHECK_INSTRUCTION = """You are an English grammar checker. Analyze the sentence and determine if it's grammatically correct.

Respond ONLY in valid JSON:
- If correct: {"isCorrect": true}
- If incorrect: {"isCorrect": false, "error": "brief explanation in Vietnamese", "correction": "corrected sentence"}

Be strict about grammar but accept minor stylistic variations."""

IMPROVEMENT_INSTRUCTION = (
    "You are an English writing coach. Suggest a more natural, fluent, or sophisticated way "
    "to express the same idea. Keep the meaning intact but make it sound better. "
    "Reply with the improved sentence only."
)

INITIAL_QUESTION_TEMPLATE = (
    'You are an English teacher helping students practice writing. Generate a simple, friendly '
    'opening question or statement related to the topic "{topic}" to start a conversation. '
    "Keep it natural and conversational."
)

NEXT_QUESTION_TEMPLATE = (
    'You are an English teacher having a conversation about "{topic}". Based on the previous '
    "messages, ask a natural follow-up question to continue the conversation. "
    "Keep it friendly and encouraging."
)

# Fail-open defaults returned when the oracle is unavailable
DEFAULT_INITIAL_QUESTION = "Hi! Let's talk about this topic."
DEFAULT_NEXT_QUESTION = "What else would you like to share?"
DEFAULT_EXPLANATION = "Grammar error"


def initial_question_instruction(topic: str) -> str:
    return INITIAL_QUESTION_TEMPLATE.format(topic=topic)


def next_question_instruction(topic: str) -> str:
    return NEXT_QUESTION_TEMPLATE.format(topic=topic)


def improvement_prompt(sentence: str) -> str:
    return f'Improve this sentence: "{sentence}"'


def next_question_prompt(prior_turns: List[str]) -> str:
    history = "\n".join(prior_turns)
    return f"Previous conversation:\n{history}\n\nGenerate the next question:"


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_grammar_verdict(response_text: str) -> Dict[str, Any]:
    """
    Parse the grammar checker's JSON. Handles optional markdown code fences.
    Returns dict with is_correct, error, correction.
    Raises ValueError when the payload has no usable isCorrect flag.
    """
    clean = re.sub(r"```json\s?|\s?```", "", (response_text or "").strip()).strip()
    if not clean:
        raise ValueError("Empty grammar verdict")
    data = json.loads(clean)
    if not isinstance(data, dict):
        raise ValueError("Grammar verdict is not a JSON object")
    is_correct = _coerce_bool(data.get("isCorrect", data.get("is_correct")))
    if is_correct is None:
        raise ValueError("Grammar verdict is missing isCorrect")
    return {
        "is_correct": is_correct,
        "error": _optional_text(data.get("error")),
        "correction": _optional_text(data.get("correction")),
    }


def clean_generated_text(text: Optional[str]) -> str:
    """Strip whitespace and one pair of wrapping quotes from free-text model output."""
    s = (text or "").strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    return s


FILL_BLANK_TEMPLATE = """You are an English teacher writing a fill-in-the-blank exercise about "{topic}".
Write one natural sentence and replace a single verb, preposition or short phrase with "___".

Respond ONLY in valid JSON:
{{"sentence": "sentence containing ___", "answer": "the missing word or phrase", "blankType": "verb" | "preposition" | "phrase"}}"""

BLANK_MARKER = "___"
BLANK_TYPES = ("verb", "preposition", "phrase")

# Served when the oracle cannot produce an exercise
DEFAULT_FILL_BLANK = {
    "sentence": "I ___ to school every day.",
    "answer": "go",
    "blank_type": "verb",
}


def fill_blank_instruction(topic: str) -> str:
    return FILL_BLANK_TEMPLATE.format(topic=topic)


def fill_blank_prompt(topic: str) -> str:
    return f"Create a fill-in-the-blank exercise about: {topic}"


def parse_fill_blank(response_text: str) -> Dict[str, str]:
    """
    Parse a generated exercise into sentence, answer and blank_type.
    Raises ValueError when the sentence has no blank or the answer is missing.
    """
    clean = re.sub(r"```json\s?|\s?```", "", (response_text or "").strip()).strip()
    if not clean:
        raise ValueError("Empty exercise")
    data = json.loads(clean)
    if not isinstance(data, dict):
        raise ValueError("Exercise is not a JSON object")
    sentence = _optional_text(data.get("sentence"))
    answer = _optional_text(data.get("answer"))
    if not sentence or BLANK_MARKER not in sentence:
        raise ValueError("Exercise sentence has no blank")
    if not answer:
        raise ValueError("Exercise has no answer")
    blank_type = (_optional_text(data.get("blankType", data.get("blank_type"))) or "").lower()
    if blank_type not in BLANK_TYPES:
        blank_type = "phrase"
    return {"sentence": sentence, "answer": answer, "blank_type": blank_type}
