"""PCM conversion utilities."""
import numpy as np

def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; ignore the dangling byte.
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f32 = audio_i16.astype(np.float32) / 32768.0
    return audio_f32


def rms_level(pcm_bytes: bytes) -> float:
    """
    Root-mean-square level of a PCM16 buffer in [0.0, 1.0].

    Observability only: logged next to outbound frames so near-silent
    commits are visible in the logs.
    """
    samples = pcm16le_to_float32(pcm_bytes)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples))))
