"""
PCM audio helpers for the voice session.
"""
import base64
import binascii

PCM16_SAMPLE_WIDTH = 2


def decode_audio_frame(data: str | bytes) -> bytes:
    """Decode an inbound audio frame. Strings are base64, bytes are already raw PCM."""
    if isinstance(data, str):
        try:
            return base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Audio frame is not valid base64: {e}") from e
    return bytes(data)


def encode_audio_frame(pcm: bytes) -> str:
    return base64.b64encode(pcm).decode("ascii")


def pcm16_duration(pcm: bytes, sample_rate: int, channels: int = 1) -> float:
    """Playback duration in seconds of 16-bit little-endian PCM."""
    frame_width = PCM16_SAMPLE_WIDTH * channels
    return (len(pcm) // frame_width) / float(sample_rate)
