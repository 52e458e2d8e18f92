#!/usr/bin/env python3
"""
PCM helpers for termwave.

Turns raw s16le mono blocks (as emitted by ffmpeg on stdout) into a
per-column RMS energy profile that the renderer draws as bars.
"""

import numpy as np

FULL_SCALE = 32768.0


def demux_samples(raw):
    """
    Convert interleaved little-endian 16-bit bytes into signed samples.

    Args:
        raw: bytes-like buffer, two bytes per sample

    Returns:
        int16 numpy array with len(raw) // 2 samples
    """
    if len(raw) % 2:
        raise ValueError(f"PCM buffer length must be even, got {len(raw)} bytes")
    return np.frombuffer(raw, dtype="<i2")


def column_rms(samples, width, out=None):
    """
    Reduce a sample block to `width` RMS values in the 0..1 range.

    Each column covers len(samples) // width consecutive samples; the last
    column also takes the remainder. When there are more columns than samples
    the columns are left at zero.

    Only the remainder handling differs from a reducer that clamps every
    column to len(samples) // width samples: such a reducer drops the tail,
    while here the last column averages it in. For evenly divisible blocks
    (the default 1024 samples over 64 or 32 columns) the two agree.

    Args:
        samples: 1-D array of int16 samples
        width: number of output columns
        out: optional float64 array of length `width` to fill in place

    Returns:
        float64 array of length `width`
    """
    width = int(width)
    if width <= 0:
        raise ValueError("width must be > 0")
    if out is None:
        out = np.zeros(width, dtype=np.float64)
    elif len(out) != width:
        raise ValueError(f"output buffer has {len(out)} columns, expected {width}")

    x = np.asarray(samples, dtype=np.float64)
    n = len(x)
    per_column = n // width
    if per_column == 0:
        return out

    normalized = x / FULL_SCALE
    squared = normalized * normalized

    body = per_column * (width - 1)
    if width > 1:
        out[:-1] = np.sqrt(squared[:body].reshape(width - 1, per_column).mean(axis=1))
    out[-1] = np.sqrt(squared[body:].mean())
    return out


class PCMReducer:
    """Demux + reduce with a preallocated profile buffer for one stream."""

    def __init__(self, width, chunk_size):
        self.width = int(width)
        self.chunk_size = int(chunk_size)
        self.profile = np.zeros(self.width, dtype=np.float64)

    @property
    def chunk_bytes(self):
        """Bytes per block: two per sample."""
        return self.chunk_size * 2

    def reduce(self, raw):
        """Return the profile for one raw block (reuses the internal buffer)."""
        if len(raw) != self.chunk_bytes:
            raise ValueError(
                f"expected {self.chunk_bytes} bytes per chunk, got {len(raw)}"
            )
        samples = demux_samples(raw)
        return column_rms(samples, self.width, out=self.profile)
