"""Text-to-speech via Gemini speech generation."""
import asyncio
import base64
import logging
import re
import wave
from io import BytesIO
from typing import Optional

from google import genai
from google.genai import types

from app.core.config import settings
from app.core.errors import InvalidArgument

logger = logging.getLogger(__name__)

READ_ALOUD_INSTRUCTION = "Read the input text aloud in English. Do not add or remove words."

_tts_client = None


def _get_tts_client():
    """Lazy load Gemini client for TTS."""
    global _tts_client
    if _tts_client is None:
        if not settings.gemini_api_key:
            raise ValueError("Gemini API key not configured. Please set GEMINI_API_KEY in environment.")
        _tts_client = genai.Client(api_key=settings.gemini_api_key)
    return _tts_client


def pcm_to_wav(
    pcm_bytes: bytes,
    *,
    channels: int = 1,
    sample_rate_hz: int = 24000,
    sample_width_bytes: int = 2,
) -> bytes:
    """Wrap raw PCM16LE bytes in a WAV container."""
    out = BytesIO()
    with wave.open(out, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width_bytes)
        wf.setframerate(sample_rate_hz)
        wf.writeframes(pcm_bytes)
    return out.getvalue()


def _sample_rate(mime_type: str) -> int:
    m = re.search(r"rate=(\d+)", mime_type or "")
    return int(m.group(1)) if m else 24000


def _speech_config(language_code: Optional[str], voice_name: Optional[str]):
    language_code = language_code or settings.tts_language
    voice_name = voice_name or settings.tts_voice
    kwargs = {}
    if language_code:
        kwargs["language_code"] = language_code
    if voice_name:
        kwargs["voice_config"] = types.VoiceConfig(
            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_name)
        )
    return types.SpeechConfig(**kwargs) if kwargs else None


def synthesize_speech(text: str, language_code: Optional[str] = None, voice_name: Optional[str] = None) -> dict:
    """
    Generate speech for `text`.

    Returns:
        {"audio": base64 string, "mime_type": str}. Raw PCM is wrapped as audio/wav.
    """
    client = _get_tts_client()
    config_dict = {
        "response_modalities": ["AUDIO"],
        "system_instruction": READ_ALOUD_INSTRUCTION,
    }
    speech_config = _speech_config(language_code, voice_name)
    if speech_config is not None:
        config_dict["speech_config"] = speech_config

    resp = client.models.generate_content(
        model=settings.tts_model,
        contents=text,
        config=types.GenerateContentConfig(**config_dict),
    )

    parts = []
    if resp.candidates and resp.candidates[0].content and resp.candidates[0].content.parts:
        parts = resp.candidates[0].content.parts
    inline = None
    for part in parts:
        data = getattr(part, "inline_data", None)
        if data is not None and data.data:
            inline = data
            if (data.mime_type or "").startswith("audio/"):
                break
    if inline is None:
        raise RuntimeError("No audio returned")

    mime_type = inline.mime_type or "audio/wav"
    audio = inline.data
    if "l16" in mime_type.lower() or "pcm" in mime_type.lower():
        audio = pcm_to_wav(audio, sample_rate_hz=_sample_rate(mime_type))
        mime_type = "audio/wav"
    return {"audio": base64.b64encode(audio).decode("ascii"), "mime_type": mime_type}


async def generate_speech(text: str, language_code: Optional[str] = None, voice_name: Optional[str] = None) -> dict:
    """Validate and synthesize in a worker thread, bounded by tts_timeout_seconds."""
    text = (text or "").strip()
    if not text:
        raise InvalidArgument("Text is required")
    if len(text) > settings.tts_max_chars:
        raise InvalidArgument("Text is too long")
    logger.info("TTS request (%s chars, model=%s)", len(text), settings.tts_model)
    return await asyncio.wait_for(
        asyncio.to_thread(synthesize_speech, text, language_code, voice_name),
        timeout=float(settings.tts_timeout_seconds),
    )
