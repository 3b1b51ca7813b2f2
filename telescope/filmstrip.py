"""Filmstrip frames extracted from the run's screen recording."""

from __future__ import annotations

import logging
import re
import subprocess
import time
from pathlib import Path
from typing import Iterable, List, Optional, Union

from telescope.models import FilmstripFrame

logger = logging.getLogger(__name__)

FRAME_PATTERN = re.compile(r"(?P<num>\d+)\.jpg$")
FFMPEG_BINARY = "ffmpeg"


def frame_offset_ms(num: int, frame_rate: int) -> int:
    return (num * 1000) // frame_rate


def index_frames(
    files: Iterable[Union[str, Path]], frame_rate: int, relative_to: Optional[Path] = None
) -> List[FilmstripFrame]:
    """
    Turn frame files into FilmstripFrames ordered by frame number.

    The number is the digits right before ``.jpg``; files without one are
    ignored. Sorting is numeric, so frame 2 comes before frame 10.
    """
    frames = []
    for file in files:
        path = Path(file)
        match = FRAME_PATTERN.search(path.name)
        if not match:
            logger.debug("Skipping non-frame file %s", path)
            continue
        num = int(match.group("num"))
        filename = path.relative_to(relative_to) if relative_to else path
        frames.append(
            FilmstripFrame(
                num=num, filename=filename.as_posix(), ms=frame_offset_ms(num, frame_rate)
            )
        )
    return sorted(frames, key=lambda frame: frame.num)


def extract_frames(video_path: Path, output_dir: Path, frame_rate: int) -> List[Path]:
    """Run ffmpeg to dump frame_<n>.jpg files at frame_rate frames per second"""
    output_dir.mkdir(parents=True, exist_ok=True)
    cmd = [
        FFMPEG_BINARY,
        "-loglevel",
        "error",
        "-y",
        "-i",
        str(video_path),
        "-vf",
        f"fps={frame_rate}",
        str(output_dir / "frame_%d.jpg"),
    ]
    subprocess.run(cmd, capture_output=True, text=True, check=True)
    return sorted(output_dir.glob("*.jpg"))


def create_filmstrip(
    video_path: Optional[Path], paths, frame_rate: int
) -> List[FilmstripFrame]:
    """Extract and index the filmstrip; an extraction failure yields no frames"""
    if video_path is None:
        logger.warning("No video recorded, skipping filmstrip")
        return []
    start = time.perf_counter()
    try:
        files = extract_frames(video_path, paths.filmstrip, frame_rate)
    except FileNotFoundError:
        logger.error("Error generating filmstrip frames: %r not found", FFMPEG_BINARY)
        return []
    except subprocess.CalledProcessError as e:
        logger.error("Error generating filmstrip frames: %s", e.stderr or e)
        return []
    frames = index_frames(files, frame_rate, relative_to=paths.results)
    logger.debug("Filmstrip: %.0fms", (time.perf_counter() - start) * 1000)
    return frames
