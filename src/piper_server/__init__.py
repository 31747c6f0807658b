"""
piper-tts-server: Piper Text-to-Speech HTTP Service with Markup DSL.

Turns annotated text into spoken audio. A client submits text plus a voice
identifier; the service expands inline markup into plain text, converts that
text to phonemes with espeak-ng, runs the voice's Piper ONNX model and
returns a 16-bit mono WAV file.

Markup DSL:
    [pause]            - short pause
    [pause:800]        - timed pause (milliseconds)
    [slow]...[/slow]   - pause between every word
    [fast]...[/fast]   - drop pauses and commas
    [emphasis]...[/emphasis]
    [spell]...[/spell] - read letter by letter
    [whisper]...[/whisper]

Key Features:
    - One Piper engine per voice, loaded once and shared across requests
    - Voice discovery from a directory of .onnx + .onnx.json files
    - Structured errors with stable machine-readable codes
    - Prometheus metrics

Example Usage:
    >>> from piper_server.core.config import Settings
    >>> from piper_server.services import SpeechService
    >>>
    >>> service = SpeechService(Settings(raw={"voices": {"dir": "./voices"}}))
    >>> result = service.speak("Hello [pause] world", "en_US-lessac-medium")
    >>> with open("output.wav", "wb") as f:
    ...     f.write(result.wav_bytes)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
