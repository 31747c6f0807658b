"""
Utility modules:
    - audio.py: WAV encoding
    - timeit.py: Performance measurement
"""
