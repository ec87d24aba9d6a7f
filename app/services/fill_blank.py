"""Fill-in-the-blank exercises: generated by the oracle, graded locally."""
import logging
from typing import Dict, Optional

from app.core.errors import InvalidArgument
from app.utils.text import normalize_sentence

logger = logging.getLogger(__name__)

TOPIC_MAX_CHARS = 200


def _normalize_answer(text: Optional[str]) -> str:
    return normalize_sentence(text).strip(" .!?,;:\"'")


async def generate_exercise(oracle, topic: Optional[str]) -> Dict[str, str]:
    topic = (topic or "").strip()
    if not topic:
        raise InvalidArgument("Topic is required")
    if len(topic) > TOPIC_MAX_CHARS:
        raise InvalidArgument(f"Topic must be at most {TOPIC_MAX_CHARS} characters")
    exercise = await oracle.generate_fill_blank(topic)
    logger.info("Fill-in-the-blank exercise on %r (%s)", topic, exercise["blank_type"])
    return exercise


def check_answer(user_answer: Optional[str], correct_answer: Optional[str]) -> Dict[str, Optional[object]]:
    """Case, spacing and end-punctuation insensitive comparison."""
    if not (user_answer or "").strip() or not (correct_answer or "").strip():
        raise InvalidArgument("userAnswer and correctAnswer are required")
    is_correct = _normalize_answer(user_answer) == _normalize_answer(correct_answer)
    feedback = None if is_correct else f'The correct answer is "{correct_answer.strip()}".'
    return {"is_correct": is_correct, "feedback": feedback}
