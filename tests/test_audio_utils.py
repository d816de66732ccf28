from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pydub.exceptions import CouldntDecodeError

from video_insight.audio_utils import audio_path_for, extract_audio, extract_audio_from_video, split_audio
from video_insight.errors import AudioExtractionError


@pytest.fixture
def sample_video(tmp_path: Path) -> Path:
    video = tmp_path / "video-abc.mp4"
    video.write_bytes(b"fake-video-bytes")
    return video


@pytest.fixture
def fake_segment(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    audio_segment = MagicMock()
    monkeypatch.setattr("video_insight.audio_utils.AudioSegment", audio_segment)
    return audio_segment


def test_audio_path_is_derived_from_video_name(sample_video: Path) -> None:
    assert audio_path_for(sample_video) == sample_video.with_name("video-abc.wav")


def test_extract_writes_16_bit_pcm_wav_next_to_video(sample_video: Path, fake_segment: MagicMock) -> None:
    output = extract_audio_from_video(sample_video)

    assert output == sample_video.with_suffix(".wav")
    fake_segment.from_file.assert_called_once_with(str(sample_video))
    decoded = fake_segment.from_file.return_value
    decoded.set_sample_width.assert_called_once_with(2)
    decoded.set_sample_width.return_value.export.assert_called_once_with(
        str(output), format="wav", codec="pcm_s16le"
    )


def test_extract_respects_output_dir(sample_video: Path, fake_segment: MagicMock, tmp_path: Path) -> None:
    output = extract_audio_from_video(sample_video, output_dir=tmp_path / "audio")

    assert output == tmp_path / "audio" / "video-abc.wav"
    assert output.parent.is_dir()


def test_transcoder_error_is_surfaced_verbatim(sample_video: Path, fake_segment: MagicMock) -> None:
    fake_segment.from_file.side_effect = CouldntDecodeError("ffmpeg returned error code: 1")

    with pytest.raises(AudioExtractionError, match="ffmpeg returned error code: 1"):
        extract_audio_from_video(sample_video)


def test_missing_ffmpeg_is_an_extraction_failure(sample_video: Path, fake_segment: MagicMock) -> None:
    fake_segment.from_file.side_effect = FileNotFoundError("ffmpeg")

    with pytest.raises(AudioExtractionError):
        extract_audio_from_video(sample_video)


def test_async_wrapper_returns_audio_path(sample_video: Path, fake_segment: MagicMock) -> None:
    assert asyncio.run(extract_audio(sample_video)) == sample_video.with_suffix(".wav")


def test_split_writes_numbered_pcm_chunks(tmp_path: Path, fake_segment: MagicMock, monkeypatch: pytest.MonkeyPatch) -> None:
    pieces = [MagicMock(), MagicMock(), MagicMock()]
    make_chunks = MagicMock(return_value=pieces)
    monkeypatch.setattr("video_insight.audio_utils.make_chunks", make_chunks)
    audio = tmp_path / "video-abc.wav"

    chunks = split_audio(audio, tmp_path / "chunks", chunk_length_ms=10_000)

    assert chunks == [tmp_path / "chunks" / f"video-abc-chunk-00{i}.wav" for i in range(3)]
    assert chunks[0].parent.is_dir()
    decoded = fake_segment.from_file.return_value
    decoded.set_sample_width.assert_called_once_with(2)
    make_chunks.assert_called_once_with(decoded.set_sample_width.return_value, 10_000)
    for piece, path in zip(pieces, chunks):
        piece.export.assert_called_once_with(str(path), format="wav", codec="pcm_s16le")
