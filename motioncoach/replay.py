"""
Replay a recorded landmark stream through the motion pipeline.

Input is JSON lines, one frame per line:

    {"t": 1033.4, "landmarks": [[x, y, visibility], ...]}
    {"t": 1066.7, "landmarks": null}

``t`` (milliseconds) is optional; frames without it are spaced by
``--fps``. ``landmarks`` may also be a mapping of body-point name or
index to ``{"x", "y", "visibility"}``.

Usage:
    python -m motioncoach.replay session.jsonl --exercise squat
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from motioncoach.analytics import generate_session_insights
from motioncoach.config import get_settings
from motioncoach.cv.motion_processor import MotionProcessor
from motioncoach.profiles import get_profile
from motioncoach.schemas.landmarks import PoseSnapshot
from motioncoach.schemas.rep_event import RepEvent

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False):
    settings = get_settings()
    level = logging.DEBUG if (debug or settings.debug) else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def parse_frame(record: Dict[str, Any]) -> Optional[PoseSnapshot]:
    landmarks = record.get("landmarks")
    if landmarks is None:
        return None
    if isinstance(landmarks, dict):
        return PoseSnapshot.from_mapping(landmarks)
    return PoseSnapshot.from_sequence(landmarks)


def read_frames(path: Path, fps: float) -> Iterator[Tuple[float, Optional[PoseSnapshot]]]:
    frame_ms = 1000.0 / fps
    with open(path, "r") as f:
        for index, line in enumerate(f):
            line = line.strip()
            if not line:
                continue
            record = json.loads(line)
            timestamp = record.get("t")
            yield (float(timestamp) if timestamp is not None else index * frame_ms), parse_frame(record)


def replay(path: Path, exercise: str, fps: float = 30.0) -> Dict[str, Any]:
    """Drive a MotionProcessor over a recording and summarize the result."""
    processor = MotionProcessor(get_profile(exercise))
    events: List[RepEvent] = []
    last_primary: Optional[str] = None
    last_secondary: Optional[str] = None
    frames = 0

    for timestamp, snapshot in read_frames(path, fps):
        result = processor.process_frame(snapshot, timestamp_ms=timestamp)
        frames += 1

        if result.rep_event is not None:
            events.append(result.rep_event)
            logger.info(
                f"Rep {result.rep_event.rep_number}: score={result.rep_event.score} "
                f"tempo={result.rep_event.tempo_status} failed={result.rep_event.checks_failed}"
            )
        if result.primary_instruction != last_primary:
            logger.info(f"[{timestamp:.0f}ms] Coach: {result.primary_instruction}")
            last_primary = result.primary_instruction
        if result.secondary_correction != last_secondary:
            if result.secondary_correction:
                logger.info(f"[{timestamp:.0f}ms] Correction: {result.secondary_correction}")
            last_secondary = result.secondary_correction

    insights = generate_session_insights(events)
    return {
        "exercise": exercise,
        "frames": frames,
        "rep_count": processor.rep_count,
        "events": [e.model_dump() for e in events],
        "narrative": insights.narrative,
        "next_session_focus": insights.next_session_focus,
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description=f"{get_settings().app_name}: replay a landmark recording through the motion pipeline"
    )
    parser.add_argument("path", type=Path, help="JSON-lines landmark recording")
    parser.add_argument("--exercise", required=True, help="Exercise profile name")
    parser.add_argument("--fps", type=float, default=30.0, help="Frame rate for records without timestamps")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    configure_logging(args.debug)

    summary = replay(args.path, args.exercise, fps=args.fps)
    json.dump(summary, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
