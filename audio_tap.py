#!/usr/bin/env python3
"""
In-process playback of the visualized PCM via sounddevice.

Alternative to running ffplay (which opens a second connection to the
stream): the visualizer hands each raw block to AudioTap.queue_pcm(), and a
sounddevice callback drains a ring buffer.
"""

import logging
import threading

import numpy as np

from pcm import FULL_SCALE, demux_samples

logger = logging.getLogger(__name__)


class AudioTap:
    """Mono float32 ring buffer feeding a sounddevice output stream."""

    def __init__(self, sample_rate=44100, latency=0.1, volume=1.0):
        """
        Args:
            sample_rate: PCM sample rate in Hz
            latency: target output latency in seconds
            volume: playback gain (0.0 to 1.0)
        """
        self.sample_rate = int(sample_rate)
        self.latency = float(latency)

        # 4x latency plus a full second of slack for bursty network reads
        buffer_samples = int(self.sample_rate * (self.latency * 4 + 1.0))
        self.buffer = np.zeros(buffer_samples, dtype=np.float32)
        self.write_pos = 0
        self.read_pos = 0
        self.buffer_lock = threading.Lock()

        self.stream = None
        self.volume = max(0.0, min(1.0, float(volume)))
        self.overflow_samples = 0
        self.underrun_samples = 0

    @property
    def running(self):
        return self.stream is not None

    @property
    def buffer_level_ms(self):
        with self.buffer_lock:
            available = (self.write_pos - self.read_pos) % len(self.buffer)
        return available / self.sample_rate * 1000

    def _read_into(self, out):
        """Copy up to len(out) buffered samples into `out`, zero-filling the rest."""
        frames = len(out)
        with self.buffer_lock:
            buffer_len = len(self.buffer)
            available = (self.write_pos - self.read_pos) % buffer_len
            count = min(frames, available)
            if count > 0:
                end_pos = self.read_pos + count
                if end_pos <= buffer_len:
                    out[:count] = self.buffer[self.read_pos:end_pos] * self.volume
                else:
                    first_part = buffer_len - self.read_pos
                    out[:first_part] = self.buffer[self.read_pos:] * self.volume
                    out[first_part:count] = self.buffer[:count - first_part] * self.volume
                self.read_pos = end_pos % buffer_len
            if count < frames:
                out[count:] = 0
                self.underrun_samples += frames - count
        return count

    def _audio_callback(self, outdata, frames, time_info, status):
        """Sounddevice callback for audio output."""
        self._read_into(outdata[:, 0])

    def queue_pcm(self, raw):
        """Queue one raw s16le block (the visualizer's on_chunk hook)."""
        samples = demux_samples(raw).astype(np.float32) / FULL_SCALE
        self.queue_audio(samples)

    def queue_audio(self, audio_data):
        """Add float32 mono samples to the ring buffer, dropping the oldest on overflow."""
        audio_data = np.asarray(audio_data, dtype=np.float32).reshape(-1)
        with self.buffer_lock:
            samples = len(audio_data)
            buffer_len = len(self.buffer)
            max_samples = buffer_len - 1
            dropped = 0

            if samples > max_samples:
                dropped += samples - max_samples
                audio_data = audio_data[-max_samples:]
                samples = max_samples

            used = (self.write_pos - self.read_pos) % buffer_len
            space = buffer_len - used - 1
            if samples > space:
                overflow = samples - space
                self.read_pos = (self.read_pos + overflow) % buffer_len
                dropped += overflow

            if dropped:
                self.overflow_samples += dropped

            if samples > 0:
                end_pos = self.write_pos + samples
                if end_pos <= buffer_len:
                    self.buffer[self.write_pos:end_pos] = audio_data
                else:
                    first_part = buffer_len - self.write_pos
                    self.buffer[self.write_pos:] = audio_data[:first_part]
                    self.buffer[:samples - first_part] = audio_data[first_part:]
                self.write_pos = end_pos % buffer_len

    def start(self):
        """Open the default output device and start playback."""
        # Imported here so the ring buffer works on hosts without PortAudio.
        import sounddevice as sd

        with self.buffer_lock:
            self.write_pos = 0
            self.read_pos = 0
            self.overflow_samples = 0
            self.underrun_samples = 0

        self.stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype='float32',
            latency=self.latency,
            callback=self._audio_callback,
        )
        self.stream.start()
        logger.info("termwave startup: audio tap at %d Hz", self.sample_rate)

    def stop(self):
        if self.stream:
            self.stream.stop()
            self.stream.close()
            self.stream = None
