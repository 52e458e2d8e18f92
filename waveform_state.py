#!/usr/bin/env python3
"""
Shared waveform state for termwave.

The stream loop is the only writer of the smoothed profile; any number of
reader threads take snapshots. Track info lives behind the same lock.
"""

import threading

import numpy as np

from metadata import TrackInfo


class WaveformState:
    """Smoothed energy profile plus cached track info, guarded by one lock."""

    def __init__(self, width):
        self.width = int(width)
        if self.width <= 0:
            raise ValueError("width must be > 0")
        self._lock = threading.Lock()
        self._smoothed = np.zeros(self.width, dtype=np.float64)
        self._track = TrackInfo()

    def apply_profile(self, raw, alpha):
        """
        Blend a freshly reduced profile into the smoothed one.

        smoothed = smoothed * (1 - alpha) + raw * alpha, element-wise.
        alpha=0 keeps the current state, alpha=1 copies `raw`.
        """
        values = np.asarray(raw, dtype=np.float64)
        if values.shape != (self.width,):
            raise ValueError(
                f"profile has shape {values.shape}, expected ({self.width},)"
            )
        alpha = float(alpha)
        with self._lock:
            self._smoothed *= (1.0 - alpha)
            self._smoothed += values * alpha

    def profile_snapshot(self):
        """Copy of the smoothed profile; safe to keep and mutate."""
        with self._lock:
            return self._smoothed.copy()

    def reset(self):
        with self._lock:
            self._smoothed[:] = 0.0

    @property
    def track(self):
        with self._lock:
            return self._track

    def set_track(self, info):
        with self._lock:
            self._track = info
