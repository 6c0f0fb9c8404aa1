"""CLI entrypoint: microphone -> STAR answer pipeline."""

from __future__ import annotations

import argparse
import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .audio_capture import AudioCaptureConfig, StreamingMicrophoneRecorder, save_recording
from .config import CoachSettings, load_environment, load_settings
from .pipeline import Notice, PipelineOrchestrator, SessionState, Severity

logger = logging.getLogger("interview-coach")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Record a behavioral interview question and draft a STAR answer.")
    parser.add_argument("--sample-rate", type=int, default=16_000, help="Requested audio sample rate")
    parser.add_argument("--channels", type=int, default=1, help="Number of audio channels")
    parser.add_argument("--model", type=str, default=None, help="Override the answer model id")
    parser.add_argument("--ffmpeg", type=str, default=None, help="Path to the ffmpeg binary")
    parser.add_argument("--output-audio", type=str, default=None, help="Optional path to keep the recording")
    parser.add_argument("--output-text", type=str, default=None, help="Optional path to save question and answer")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    load_environment()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    args = parse_args(argv)

    ffmpeg_binary = args.ffmpeg or os.getenv("INTERVIEW_COACH_FFMPEG") or "ffmpeg"
    recorder = StreamingMicrophoneRecorder(
        AudioCaptureConfig(
            sample_rate=args.sample_rate,
            channels=args.channels,
            ffmpeg_binary=ffmpeg_binary,
        )
    )

    def settings() -> CoachSettings:
        loaded = load_settings()
        if args.model:
            loaded.answer_model = args.model
        loaded.ffmpeg_binary = ffmpeg_binary
        return loaded

    results: dict[str, str] = {}

    def on_complete(question: str, answer: str) -> None:
        results["question"] = question
        results["answer"] = answer

    orchestrator = PipelineOrchestrator(
        recorder,
        load_settings=settings,
        on_notice=_print_notice,
        on_transcription_complete=on_complete,
    )

    input("Press Enter to start recording...")
    orchestrator.start_recording()
    if orchestrator.state is not SessionState.RECORDING:
        return 1
    input("Recording... press Enter to stop.")
    orchestrator.stop_recording()
    if orchestrator.state is not SessionState.STOPPED:
        return 1

    if args.output_audio and orchestrator.session.recording is not None:
        path = save_recording(orchestrator.session.recording, args.output_audio)
        logger.info("Saved audio to %s", path.resolve())

    orchestrator.generate_answer(background=False)
    if orchestrator.state is not SessionState.COMPLETED:
        return 1

    if results:
        print(f"\nQuestion detected:\n{results['question']}\n")
        print(f"Suggested answer:\n{results['answer']}\n")
        if args.output_text:
            _persist_output(Path(args.output_text), results["question"], results["answer"])
    return 0


def _print_notice(notice: Notice) -> None:
    stream = sys.stderr if notice.severity is Severity.ERROR else sys.stdout
    print(f"[{notice.title}] {notice.message}", file=stream)


def _persist_output(path: Path, question: str, answer: str) -> None:
    """Write question and answer to a text file, timestamping directories."""
    if path.is_dir():
        timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
        path = path / f"answer_{timestamp}.txt"
    path.parent.mkdir(parents=True, exist_ok=True)
    content = f"Question:\n{question}\n\nAnswer:\n{answer}\n"
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        logger.error("Failed to write output file: %s", exc)
    else:
        logger.info("Saved output to %s", path)


if __name__ == "__main__":
    sys.exit(main())
