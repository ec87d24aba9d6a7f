"""Vocabulary flashcards."""
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument
from app.models.user import Flashcard


def upsert_flashcard(
    db: Session,
    user_id: str,
    source_text: str,
    translation: Optional[str] = None,
    source_lang: Optional[str] = None,
    target_lang: Optional[str] = None,
) -> Flashcard:
    """Create a card, or update the translation/languages of the user's card with the same text."""
    source_text = (source_text or "").strip()
    if not source_text:
        raise InvalidArgument("Text is required")
    translation = (translation or "").strip() or None
    source_lang = (source_lang or "").strip() or "en"
    target_lang = (target_lang or "").strip() or "vi"

    card = (
        db.query(Flashcard)
        .filter(Flashcard.user_id == user_id, Flashcard.source_text == source_text)
        .first()
    )
    if card is None:
        card = Flashcard(
            user_id=user_id,
            source_text=source_text,
            translation=translation,
            source_lang=source_lang,
            target_lang=target_lang,
        )
        db.add(card)
    else:
        # Keep the stored translation when the update carries none
        if translation:
            card.translation = translation
        card.source_lang = source_lang
        card.target_lang = target_lang
    db.commit()
    db.refresh(card)
    return card


def list_flashcards(db: Session, user_id: str) -> List[Flashcard]:
    return (
        db.query(Flashcard)
        .filter(Flashcard.user_id == user_id)
        .order_by(Flashcard.created_at.desc(), Flashcard.id.desc())
        .all()
    )
