"""Writing session state machine.

A session is either awaiting user input or completed. Each `submit` call is one
atomic step: grade the submission, then either record a rejection (the user
must resubmit) or accept it and append the next AI turn, completing the session
once the message cap is reached. No state is kept between calls; every step
re-reads the ledger.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, List, Optional, TypeVar

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidArgument, NotFound, OrderConflict, SessionClosed
from app.core.prompts import DEFAULT_EXPLANATION, DEFAULT_NEXT_QUESTION
from app.models.writing import Message, Role, SessionStatus, WritingSession
from app.services.ledger import SessionLedger
from app.services.oracle import GrammarVerdict
from app.utils.text import same_sentence

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StepResult:
    is_correct: bool
    error: Optional[str] = None
    suggestion: Optional[str] = None
    ai_message: Optional[str] = None
    improvement: Optional[str] = None
    message_count: Optional[int] = None
    is_completed: Optional[bool] = None
    fallback: bool = False


def _format_turns(history: List[Message], user_message: str) -> List[str]:
    turns = [f"{m.role.value}: {m.content}" for m in history]
    turns.append(f"{Role.USER.value}: {user_message}")
    return turns


class WritingSessionEngine:
    def __init__(
        self,
        db: Session,
        oracle,
        max_messages: Optional[int] = None,
        improvement_enabled: Optional[bool] = None,
        conflict_retries: Optional[int] = None,
        oracle_timeout: Optional[float] = None,
    ):
        self.ledger = SessionLedger(db)
        self.oracle = oracle
        self.max_messages = settings.writing_max_messages if max_messages is None else max_messages
        self.improvement_enabled = settings.improvement_enabled if improvement_enabled is None else improvement_enabled
        self.conflict_retries = settings.ledger_conflict_retries if conflict_retries is None else conflict_retries
        self.oracle_timeout = settings.oracle_timeout_seconds if oracle_timeout is None else oracle_timeout

    def _resolve(self, user_id: str, session_id: str) -> WritingSession:
        session = self.ledger.get_session(session_id)
        if session is None or session.user_id != user_id:
            raise NotFound("Session not found")
        if session.status == SessionStatus.COMPLETED:
            raise SessionClosed()
        return session

    async def _bounded(self, call: Awaitable[T], default: T, what: str) -> T:
        """Await an oracle call with a timeout; any failure yields `default`."""
        try:
            return await asyncio.wait_for(call, timeout=self.oracle_timeout)
        except asyncio.TimeoutError:
            logger.warning("Oracle %s timed out after %ss; failing open", what, self.oracle_timeout)
        except Exception as e:
            logger.error(f"Oracle {what} failed; failing open: {e}", exc_info=True)
        return default

    async def _grade(self, user_message: str) -> GrammarVerdict:
        verdict = await self._bounded(
            self.oracle.check_grammar(user_message),
            GrammarVerdict(is_correct=True, fallback=True),
            "grammar check",
        )
        if verdict.fallback:
            return verdict
        if not verdict.is_correct and verdict.correction and same_sentence(verdict.correction, user_message):
            logger.info("Oracle flagged a sentence but proposed no change; treating as correct")
            return GrammarVerdict(is_correct=True)
        return verdict

    async def submit(self, user_id: str, session_id: str, user_message: str) -> StepResult:
        text = (user_message or "").strip()
        if not text:
            raise InvalidArgument("userMessage is required")
        self._resolve(user_id, session_id)

        verdict = await self._grade(text)
        if not verdict.is_correct:
            return self._with_conflict_retries(session_id, lambda: self._record_rejection(session_id, text, verdict))
        return await self._accept(user_id, session_id, text, verdict)

    def _with_conflict_retries(self, session_id: str, write):
        attempt = 0
        while True:
            try:
                return write()
            except OrderConflict:
                self.ledger.rollback()
                attempt += 1
                if attempt > self.conflict_retries:
                    logger.warning("Giving up on session %s after %s order conflicts", session_id, attempt)
                    raise
            except Exception:
                self.ledger.rollback()
                raise

    def _record_rejection(self, session_id: str, text: str, verdict: GrammarVerdict) -> StepResult:
        order = self.ledger.count_messages(session_id) + 1
        self.ledger.append_message(session_id, Role.USER, text, order, is_correct=False)
        self.ledger.append_mistake(
            session_id,
            original=text,
            correction=verdict.correction or "",
            explanation=verdict.error or DEFAULT_EXPLANATION,
        )
        self.ledger.commit()
        logger.info("Session %s: submission at order %s rejected", session_id, order)
        return StepResult(is_correct=False, error=verdict.error, suggestion=verdict.correction)

    async def _accept(self, user_id: str, session_id: str, text: str, verdict: GrammarVerdict) -> StepResult:
        wants_improvement = self.improvement_enabled and not verdict.fallback
        improvement: Optional[str] = None
        attempt = 0
        while True:
            session = self._resolve(user_id, session_id)
            order = self.ledger.count_messages(session_id) + 1
            is_completed = order >= self.max_messages

            pending = {}
            if wants_improvement and improvement is None:
                pending["improvement"] = self._bounded(self.oracle.generate_improvement(text), text, "improvement")
            if not is_completed:
                turns = _format_turns(self.ledger.list_messages_ordered(session_id), text)
                pending["question"] = self._bounded(
                    self.oracle.generate_next_question(session.topic, turns), DEFAULT_NEXT_QUESTION, "next question"
                )
            results = dict(zip(pending.keys(), await asyncio.gather(*pending.values())))
            if "improvement" in results:
                improvement = results["improvement"]

            try:
                result = self._record_acceptance(
                    session_id, text, order, improvement, results.get("question"), is_completed
                )
            except OrderConflict:
                self.ledger.rollback()
                attempt += 1
                if attempt > self.conflict_retries:
                    logger.warning("Giving up on session %s after %s order conflicts", session_id, attempt)
                    raise
                continue
            except Exception:
                self.ledger.rollback()
                raise
            result.fallback = verdict.fallback
            return result

    def _record_acceptance(
        self,
        session_id: str,
        text: str,
        order: int,
        improvement: Optional[str],
        next_question: Optional[str],
        is_completed: bool,
    ) -> StepResult:
        self.ledger.append_message(session_id, Role.USER, text, order, is_correct=True, improvement=improvement)
        if is_completed:
            self.ledger.mark_completed(session_id)
            self.ledger.commit()
            logger.info("Session %s completed at order %s", session_id, order)
            return StepResult(is_correct=True, improvement=improvement, message_count=order, is_completed=True)

        self.ledger.append_message(session_id, Role.AI, next_question, order + 1)
        self.ledger.commit()
        logger.info("Session %s advanced to order %s", session_id, order + 1)
        return StepResult(
            is_correct=True,
            ai_message=next_question,
            improvement=improvement,
            message_count=order + 1,
            is_completed=False,
        )
