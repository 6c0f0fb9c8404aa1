"""
Spoken behavioral question -> STAR answer pipeline.

Modules:
- audio_capture: microphone recording utilities.
- normalization: WebM/Opus to WAV transcoding.
- transcription: speech-to-text services.
- answering: STAR answer generation.
- pipeline: session state machine and orchestration.
- app: command line entry point.
- web_server: HTTP entry point.
"""

__version__ = "0.1.0"
