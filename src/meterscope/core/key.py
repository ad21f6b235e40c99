"""
Chroma-based key estimation from a decibel spectrum.

Each bin between 80 Hz and 5 kHz is folded onto its nearest equal-tempered
pitch class and its linear magnitude is summed into a 12-bin chroma vector.
The strongest pitch class is reported as the key root; mode is not estimated.
"""

from typing import Optional

import numpy as np

PITCH_CLASSES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

MIN_KEY_FREQ = 80.0
MAX_KEY_FREQ = 5000.0
REFERENCE_FREQ = 440.0
# A440 is pitch class 9 when C is 0
REFERENCE_PITCH_CLASS = 9


def pitch_class_name(index: int) -> str:
    """Convert a chroma index (0-11, wrapping) to a note name."""
    return PITCH_CLASSES[index % 12]


def frequency_to_pitch_class(freq: np.ndarray) -> np.ndarray:
    """Nearest equal-tempered pitch class (0 = C) for each frequency in Hz."""
    # round half up (quarter tones go to the upper semitone)
    semitones = np.floor(
        12.0 * np.log2(np.asarray(freq, dtype=np.float64) / REFERENCE_FREQ) + 0.5
    )
    return (semitones.astype(np.int64) + REFERENCE_PITCH_CLASS) % 12


def chroma_vector(freq_data: np.ndarray, sample_rate: float) -> np.ndarray:
    """
    Accumulate linear magnitude per pitch class.

    Args:
        freq_data: Decibel magnitudes, bin ``i`` centred on
            ``i * sample_rate / (2 * N)`` Hz.  Bin 0 (DC) is ignored.
        sample_rate: Sample rate in Hz.

    Returns:
        Array of shape (12,), index 0 = C.
    """
    db = np.asarray(freq_data, dtype=np.float64)
    chroma = np.zeros(12)
    n_bins = len(db)
    if n_bins < 2 or sample_rate <= 0:
        return chroma

    bin_size = sample_rate / (2.0 * n_bins)
    freqs = np.arange(1, n_bins) * bin_size
    in_range = (freqs >= MIN_KEY_FREQ) & (freqs <= MAX_KEY_FREQ)
    if not np.any(in_range):
        return chroma

    classes = frequency_to_pitch_class(freqs[in_range])
    energy = np.power(10.0, db[1:][in_range] / 20.0)
    energy = np.nan_to_num(energy, nan=0.0, posinf=0.0)
    np.add.at(chroma, classes, energy)
    return chroma


def detect_key(freq_data: np.ndarray, sample_rate: float) -> Optional[str]:
    """
    Return the dominant pitch class label, or None if no energy was found.

    Ties resolve to the lowest pitch class index.
    """
    chroma = chroma_vector(freq_data, sample_rate)
    key_index = int(np.argmax(chroma))
    if not chroma[key_index] > 0:
        return None
    return PITCH_CLASSES[key_index]
