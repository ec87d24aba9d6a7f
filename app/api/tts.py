"""Text-to-speech endpoint."""
import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.errors import InvalidArgument
from app.models.user import User
from app.schemas.practice import TTSRequest, TTSResponse
from app.services.tts import generate_speech

logger = logging.getLogger(__name__)

# User-safe message for timeout (no stack traces or internal detail)
TIMEOUT_MESSAGE = "Request took too long. Please try again."

router = APIRouter()


@router.post("/tts", response_model=TTSResponse)
async def text_to_speech(request: TTSRequest, user: User = Depends(get_current_user)):
    """Read a sentence aloud. Returns base64 audio for the browser to play."""
    try:
        result = await generate_speech(request.text, request.language_code, request.voice_name)
        return TTSResponse(audio=result["audio"], mime_type=result["mime_type"])
    except InvalidArgument:
        raise
    except asyncio.TimeoutError:
        logger.warning("TTS request timed out")
        raise HTTPException(status_code=504, detail=TIMEOUT_MESSAGE)
    except Exception as e:
        logger.error(f"Unexpected error in text_to_speech: {e}", exc_info=True)
        detail = str(e) if settings.debug_errors else "An error occurred generating speech."
        raise HTTPException(status_code=500, detail=detail)
