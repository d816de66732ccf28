"""Transcribe audio using SpeechRecognition (Google Speech API)."""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Awaitable, Callable

import speech_recognition as sr
from pydub.exceptions import CouldntDecodeError

from video_insight.audio_utils import split_audio
from video_insight.errors import (
    AudioFileMissingError,
    EmptyAudioError,
    EmptyTranscriptError,
    TranscriptionError,
)
from video_insight.retry import TRANSCRIPTION_POLICY, with_retry

logger = logging.getLogger(__name__)


def check_audio_file(audio_path: str | Path) -> Path:
    """Fail fast if the audio file is missing, unreadable or empty."""
    path = Path(audio_path)
    if not path.is_file() or not os.access(path, os.R_OK):
        raise AudioFileMissingError(f"Audio file is missing or unreadable: {path}")
    if path.stat().st_size == 0:
        raise EmptyAudioError("Audio file is empty")
    return path


class SpeechTranscriber:
    """Speech-to-text client; long audio is sent in chunks and joined."""

    def __init__(
        self,
        api_key: str,
        language: str = "en-US",
        chunk_length_ms: int = 30_000,
        recognizer: sr.Recognizer | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.api_key = api_key
        self.language = language
        self.chunk_length_ms = chunk_length_ms
        self.recognizer = recognizer or sr.Recognizer()
        self._sleep = sleep

    def _recognize(self, chunk_path: Path) -> str:
        with sr.AudioFile(str(chunk_path)) as source:
            audio_data = self.recognizer.record(source)
        try:
            return self.recognizer.recognize_google(
                audio_data, key=self.api_key, language=self.language
            )
        except sr.UnknownValueError:
            logger.info("No speech recognised in %s", chunk_path)
            return ""

    async def _transcribe_chunk(self, chunk_path: Path) -> str:
        return await with_retry(
            lambda: asyncio.to_thread(self._recognize, chunk_path),
            TRANSCRIPTION_POLICY.max_attempts,
            TRANSCRIPTION_POLICY.classify,
            sleep=self._sleep,
            label="speech recognition",
        )

    async def transcribe(self, audio_path: str | Path) -> str:
        """
        Transcribe a WAV file.

        Args:
            audio_path: Path to the extracted audio.

        Returns:
            Full transcript text.

        Raises:
            AudioFileMissingError, EmptyAudioError: Checked before any provider call.
            TranscriptionError: The provider kept failing.
            EmptyTranscriptError: The provider returned no text.
        """
        path = check_audio_file(audio_path)

        parts: list[str] = []
        with tempfile.TemporaryDirectory(
            prefix="chunks-", dir=path.parent, ignore_cleanup_errors=True
        ) as tmpdir:
            try:
                chunks = await asyncio.to_thread(
                    split_audio,
                    path,
                    tmpdir,
                    chunk_length_ms=self.chunk_length_ms,
                )
            except (CouldntDecodeError, OSError) as e:
                raise TranscriptionError(f"Could not read audio file: {e}") from e
            for chunk in chunks:
                try:
                    text = await self._transcribe_chunk(chunk)
                except Exception as e:
                    raise TranscriptionError(f"Transcription failed: {e}") from e
                if text and text.strip():
                    parts.append(text.strip())

        transcript = " ".join(parts).strip()
        if not transcript:
            raise EmptyTranscriptError("Transcription returned empty")
        logger.info("Transcribed %d chunk(s), %d chars", len(chunks), len(transcript))
        return transcript
