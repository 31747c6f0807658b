"""
Synthesis pipeline components:
    - voice.py: Voice descriptors and discovery
    - phonemes.py: Phoneme -> id encoding
    - phonemizer.py: espeak-ng subprocess wrapper
    - engine.py: ONNX Runtime engine for Piper models
    - engine_cache.py: One engine per voice, single-flight loading
    - concurrency.py: Slot limiting with a bounded queue
"""
