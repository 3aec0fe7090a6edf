"""
PCG Monitor — real-time heart-rate estimation from a phonocardiogram.
Press a stethoscope microphone against the chest; the system detects the
rising edges of the heart sounds in the 16-bit PCM stream and computes BPM.
"""

__version__ = "0.1.0"
__author__ = "pcg_monitor"
