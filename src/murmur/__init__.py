"""murmur: push-to-talk dictation over a streaming transcription service."""

__version__ = "0.1.0"
