from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import speech_recognition as sr

from video_insight.errors import (
    AudioFileMissingError,
    EmptyAudioError,
    EmptyTranscriptError,
    TranscriptionError,
)
from video_insight.transcription import SpeechTranscriber


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "video-abc.wav"
    path.write_bytes(b"RIFF-fake-wav")
    return path


def _fake_split(count: int):
    calls: list[tuple] = []

    def split(path, output_dir, chunk_length_ms):
        calls.append((Path(path), chunk_length_ms))
        chunks = []
        for i in range(count):
            chunk = Path(output_dir) / f"chunk_{i}.wav"
            chunk.write_bytes(b"chunk")
            chunks.append(chunk)
        return chunks

    return split, calls


def _transcriber(responses, sleep=None) -> tuple[SpeechTranscriber, list[str]]:
    transcriber = SpeechTranscriber(api_key="speech-key", recognizer=MagicMock(), sleep=sleep or FakeSleep())
    seen: list[str] = []
    pending = list(responses)

    def recognize(chunk_path: Path) -> str:
        seen.append(Path(chunk_path).name)
        item = pending.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    transcriber._recognize = recognize
    return transcriber, seen


def test_empty_audio_fails_before_any_provider_call(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    empty = tmp_path / "empty.wav"
    empty.write_bytes(b"")
    split = MagicMock()
    monkeypatch.setattr("video_insight.transcription.split_audio", split)
    recognizer = MagicMock()

    transcriber = SpeechTranscriber(api_key="speech-key", recognizer=recognizer)
    with pytest.raises(EmptyAudioError, match="Audio file is empty"):
        asyncio.run(transcriber.transcribe(empty))

    split.assert_not_called()
    recognizer.recognize_google.assert_not_called()


def test_missing_audio_is_terminal(tmp_path: Path) -> None:
    transcriber = SpeechTranscriber(api_key="speech-key", recognizer=MagicMock())
    with pytest.raises(AudioFileMissingError):
        asyncio.run(transcriber.transcribe(tmp_path / "nope.wav"))


def test_chunks_are_joined_and_removed(audio_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    split, calls = _fake_split(3)
    monkeypatch.setattr("video_insight.transcription.split_audio", split)
    transcriber, seen = _transcriber(["hello there", "", " general kenobi "])

    transcript = asyncio.run(transcriber.transcribe(audio_file))

    assert transcript == "hello there general kenobi"
    assert seen == ["chunk_0.wav", "chunk_1.wav", "chunk_2.wav"]
    assert calls == [(audio_file, 30_000)]
    assert sorted(p.name for p in audio_file.parent.iterdir()) == ["video-abc.wav"]


def test_provider_errors_are_retried(audio_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    split, _ = _fake_split(1)
    monkeypatch.setattr("video_insight.transcription.split_audio", split)
    sleep = FakeSleep()
    transcriber, seen = _transcriber(
        [sr.RequestError("503 backend error"), sr.RequestError("503 backend error"), "recovered"],
        sleep=sleep,
    )

    assert asyncio.run(transcriber.transcribe(audio_file)) == "recovered"
    assert len(seen) == 3
    assert sleep.delays == [2.0, 4.0]


def test_persistent_provider_failure_gives_up_after_three_attempts(
    audio_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    split, _ = _fake_split(1)
    monkeypatch.setattr("video_insight.transcription.split_audio", split)
    transcriber, seen = _transcriber([sr.RequestError("quota exceeded")] * 3)

    with pytest.raises(TranscriptionError, match="quota exceeded"):
        asyncio.run(transcriber.transcribe(audio_file))

    assert len(seen) == 3


def test_empty_transcript_is_a_failure(audio_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    split, _ = _fake_split(2)
    monkeypatch.setattr("video_insight.transcription.split_audio", split)
    transcriber, _ = _transcriber(["", "   "])

    with pytest.raises(EmptyTranscriptError):
        asyncio.run(transcriber.transcribe(audio_file))


def test_unintelligible_chunk_yields_no_text(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("video_insight.transcription.sr.AudioFile", MagicMock())
    recognizer = MagicMock()
    recognizer.recognize_google.side_effect = sr.UnknownValueError()

    transcriber = SpeechTranscriber(api_key="speech-key", language="de-DE", recognizer=recognizer)

    assert transcriber._recognize(tmp_path / "chunk.wav") == ""
    recognizer.recognize_google.assert_called_once_with(
        recognizer.record.return_value, key="speech-key", language="de-DE"
    )


def test_chunk_dir_cleanup_failure_keeps_transcription_error(
    audio_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    split, _ = _fake_split(1)
    monkeypatch.setattr("video_insight.transcription.split_audio", split)
    transcriber, _ = _transcriber([sr.RequestError("provider down")] * 3)
    failing = transcriber._recognize

    def recognize_and_break_chunk_dir(chunk_path: Path) -> str:
        chunk_dir = Path(chunk_path).parent
        if chunk_dir.is_dir():
            # A plain file where the directory was makes its removal fail
            shutil.rmtree(chunk_dir)
            chunk_dir.write_bytes(b"")
        return failing(chunk_path)

    transcriber._recognize = recognize_and_break_chunk_dir

    with pytest.raises(TranscriptionError, match="provider down"):
        asyncio.run(transcriber.transcribe(audio_file))
