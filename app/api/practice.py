"""Flashcard, weekly goal and fill-in-the-blank endpoints."""
from typing import Union

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_oracle
from app.core.errors import InvalidArgument
from app.database import get_db
from app.models.user import User
from app.schemas.practice import (
    CreateFlashcardRequest,
    CreateFlashcardResponse,
    FillBlankExercise,
    FillBlankRequest,
    FillBlankResult,
    FlashcardItem,
    FlashcardsResponse,
    GoalOut,
    GoalProgress,
    GoalsResponse,
    UpdateGoalRequest,
)
from app.services.fill_blank import check_answer, generate_exercise
from app.services.flashcards import list_flashcards, upsert_flashcard
from app.services.goals import get_goal_progress, get_or_create_goal, update_goal

router = APIRouter()


@router.get("/flashcards", response_model=FlashcardsResponse)
async def get_flashcards(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cards = list_flashcards(db, user.id)
    return FlashcardsResponse(flashcards=[FlashcardItem.model_validate(c) for c in cards])


@router.post("/flashcards", response_model=CreateFlashcardResponse)
async def save_flashcard(
    request: CreateFlashcardRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Save a word or phrase; saving the same text again updates its translation."""
    card = upsert_flashcard(
        db,
        user.id,
        request.text,
        translation=request.translation,
        source_lang=request.source_lang,
        target_lang=request.target_lang,
    )
    return CreateFlashcardResponse(flashcard=FlashcardItem.model_validate(card))


def _goals_response(db: Session, user_id: str, goal) -> GoalsResponse:
    return GoalsResponse(
        goal=GoalOut.model_validate(goal),
        progress=GoalProgress(**get_goal_progress(db, user_id)),
    )


@router.get("/goals", response_model=GoalsResponse)
async def get_goals(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _goals_response(db, user.id, get_or_create_goal(db, user.id))


@router.post("/goals", response_model=GoalsResponse)
async def set_goals(
    request: UpdateGoalRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    goal = update_goal(
        db,
        user.id,
        weekly_session_goal=request.weekly_session_goal,
        reminder_enabled=request.reminder_enabled,
        reminder_time=request.reminder_time,
        reminder_timezone=request.reminder_timezone,
    )
    return _goals_response(db, user.id, goal)


@router.post(
    "/practice/fill-blank",
    response_model=Union[FillBlankExercise, FillBlankResult],
    response_model_exclude_none=True,
)
async def fill_blank(
    request: FillBlankRequest,
    user: User = Depends(get_current_user),
    oracle=Depends(get_oracle),
):
    """Generate an exercise on a topic, or grade an answer against the expected one."""
    if request.action == "generate":
        return FillBlankExercise(**await generate_exercise(oracle, request.topic))
    if request.action == "check":
        return FillBlankResult(**check_answer(request.user_answer, request.correct_answer))
    raise InvalidArgument('Invalid action. Use "generate" or "check"')
