"""
Audio Assembly Module

Concatenates per-chunk audio into one file per article and keeps the running
time offset of every chunk. Offsets always come from the measured duration
of the audio that was actually written, never from text length estimates.
"""

import asyncio
import io
import json
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

from newscast.utils.config import config
from newscast.utils import logger


class DurationProbe(ABC):
    """Measures the playback duration of an encoded audio buffer."""

    def probe(self, audio: bytes) -> float:
        """
        Get the duration of audio in seconds.

        A failed measurement is not fatal: it logs a warning and reports 0.
        """
        try:
            return self._measure(audio)
        except Exception as e:
            logger.warning(f"Could not measure audio duration: {e}")
            return 0.0

    @abstractmethod
    def _measure(self, audio: bytes) -> float:
        ...


class FFprobeDurationProbe(DurationProbe):
    """Duration via the ffprobe command line tool."""

    def __init__(self, suffix: str = ".mp3"):
        self.suffix = suffix

    def _measure(self, audio: bytes) -> float:
        with tempfile.NamedTemporaryFile(suffix=self.suffix, delete=False) as tmp:
            tmp.write(audio)
            tmp_path = tmp.name

        try:
            return get_audio_duration(Path(tmp_path))
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)


class SoundfileDurationProbe(DurationProbe):
    """Duration via libsndfile, read straight from memory."""

    def _measure(self, audio: bytes) -> float:
        import soundfile as sf

        return float(sf.info(io.BytesIO(audio)).duration)


def get_audio_duration(audio_path: Path) -> float:
    """Get the duration of an audio file in seconds."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-show_entries", "format=duration",
        "-of", "json",
        str(audio_path),
    ]

    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise RuntimeError(f"Failed to get duration: {result.stderr}")

    data = json.loads(result.stdout)
    return float(data["format"]["duration"])


def get_duration_probe(name: Optional[str] = None) -> DurationProbe:
    """Create the duration probe named in config (``ffprobe`` or ``soundfile``)."""
    name = (name or config.get("audio", "probe", default="ffprobe")).lower()
    if name == "ffprobe":
        return FFprobeDurationProbe(suffix=f".{config.audio_extension}")
    if name == "soundfile":
        return SoundfileDurationProbe()
    raise ValueError(f"Unknown duration probe: {name}")


class AudioAssembler:
    """
    Append-only writer for one article's audio.

    Every append measures the chunk it just wrote and returns the offset at
    which that chunk starts, which is what its captions must be shifted by,
    along with the chunk's measured duration.
    """

    def __init__(self, output_path: Path, probe: DurationProbe):
        self.output_path = Path(output_path)
        self.probe = probe
        self.total_ms = 0.0
        self.chunk_count = 0

    def open(self) -> None:
        """Create (or truncate) the output file."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_bytes(b"")
        self.total_ms = 0.0
        self.chunk_count = 0

    async def append(self, audio: bytes) -> Tuple[float, float]:
        """
        Append a chunk and measure it.

        Args:
            audio: Encoded audio bytes, written unmodified

        Returns:
            (offset, duration) in milliseconds: where this chunk starts and
            how long it measured. A failed measurement gives duration 0.
        """
        offset = self.total_ms
        with open(self.output_path, "ab") as f:
            f.write(audio)

        duration_s = await asyncio.to_thread(self.probe.probe, audio)
        duration_ms = duration_s * 1000.0
        self.total_ms += duration_ms
        self.chunk_count += 1
        return offset, duration_ms

    def discard(self) -> None:
        """Delete whatever has been written so far."""
        self.output_path.unlink(missing_ok=True)
