#!/usr/bin/env python3
"""
ffmpeg/ffplay process wrappers for termwave.

FFmpegDecoder turns a stream URL into raw mono s16le PCM on a pipe;
FFplayPlayer plays the same URL through the default audio device.

Environment overrides:
  - TERMWAVE_FFMPEG_BIN: ffmpeg binary name/path (default: ffmpeg)
  - TERMWAVE_FFPLAY_BIN: ffplay binary name/path (default: ffplay)
"""

import logging
import os
import shutil
import subprocess
import threading

logger = logging.getLogger(__name__)


def _resolve_binary(binary_name, env_var, default):
    name = binary_name or os.environ.get(env_var, default).strip() or default
    return name, shutil.which(name)


def _terminate(proc, wait_s=2.0):
    """Terminate a child process, escalating to kill if it lingers."""
    try:
        proc.terminate()
        proc.wait(timeout=wait_s)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait(timeout=1.0)
    except OSError:
        pass

    for stream in (proc.stdin, proc.stdout, proc.stderr):
        try:
            if stream is not None:
                stream.close()
        except (OSError, ValueError):
            pass


class FFmpegDecoder:
    """
    Manage an ffmpeg subprocess decoding a stream to raw PCM.

    Usable as a context manager so the process is torn down on every exit
    path of the code reading from it:

        with FFmpegDecoder(44100) as decoder:
            pipe = decoder.start(url)
            ...
    """

    def __init__(self, sample_rate=44100, binary_name=None):
        self.sample_rate = int(sample_rate)
        self.binary_name, self._binary_path = _resolve_binary(
            binary_name, "TERMWAVE_FFMPEG_BIN", "ffmpeg"
        )
        self._process = None
        self._lock = threading.Lock()
        self.last_error = ""

    @property
    def available(self):
        """True if the ffmpeg binary was found."""
        return self._binary_path is not None

    @property
    def unavailable_reason(self):
        if self.available:
            return ""
        return f"{self.binary_name} not found in PATH"

    @property
    def is_running(self):
        with self._lock:
            proc = self._process
        return proc is not None and proc.poll() is None

    def build_command(self, stream_url):
        """Low-latency decode to mono s16le at the configured rate on stdout."""
        return [
            self._binary_path or self.binary_name,
            "-hide_banner",
            "-loglevel", "error",
            "-nostdin",
            "-probesize", "32k",
            "-analyzeduration", "0",
            "-fflags", "nobuffer",
            "-flags", "low_delay",
            "-i", stream_url,
            "-ac", "1",
            "-ar", str(self.sample_rate),
            "-f", "s16le",
            "-acodec", "pcm_s16le",
            "-vn",
            "-",
        ]

    def start(self, stream_url):
        """
        Launch ffmpeg and return its stdout pipe.

        Raises:
            RuntimeError: ffmpeg is missing or could not be started.
        """
        with self._lock:
            if self._process is not None:
                raise RuntimeError("ffmpeg decoder already running")

        if not self.available:
            self.last_error = f"ffmpeg not found; install ffmpeg ({self.unavailable_reason})"
            raise RuntimeError(self.last_error)

        cmd = self.build_command(stream_url)
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            self.last_error = f"Failed to start ffmpeg: {exc}"
            raise RuntimeError(self.last_error) from exc

        if proc.stdout is None:
            _terminate(proc)
            self.last_error = "Failed to create ffmpeg stdout pipe"
            raise RuntimeError(self.last_error)

        with self._lock:
            self._process = proc
        self.last_error = ""
        logger.info("termwave startup: ffmpeg decoding %s at %d Hz", stream_url, self.sample_rate)
        return proc.stdout

    def stop(self):
        """Stop ffmpeg if active. Safe to call more than once and from any thread."""
        with self._lock:
            proc = self._process
            self._process = None
        if proc is None:
            return
        _terminate(proc)
        logger.debug("ffmpeg stopped (rc=%s)", proc.returncode)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False


class FFplayPlayer:
    """Play a stream URL with ffplay (no video window)."""

    def __init__(self, binary_name=None):
        self.binary_name, self._binary_path = _resolve_binary(
            binary_name, "TERMWAVE_FFPLAY_BIN", "ffplay"
        )
        self._process = None
        self._lock = threading.Lock()
        self.last_error = ""

    @property
    def available(self):
        return self._binary_path is not None

    @property
    def unavailable_reason(self):
        if self.available:
            return ""
        return f"{self.binary_name} not found in PATH"

    @property
    def is_running(self):
        with self._lock:
            proc = self._process
        return proc is not None and proc.poll() is None

    def build_command(self, stream_url):
        return [
            self._binary_path or self.binary_name,
            "-nodisp",
            "-autoexit",
            "-loglevel", "error",
            stream_url,
        ]

    def start(self, stream_url):
        """Start playback; replaces any running player."""
        self.stop()
        if not self.available:
            self.last_error = f"ffplay not found; install ffmpeg ({self.unavailable_reason})"
            raise RuntimeError(self.last_error)

        try:
            proc = subprocess.Popen(
                self.build_command(stream_url),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            self.last_error = f"Failed to start ffplay: {exc}"
            raise RuntimeError(self.last_error) from exc

        with self._lock:
            self._process = proc
        self.last_error = ""
        logger.info("termwave startup: ffplay playing %s", stream_url)

    def stop(self):
        with self._lock:
            proc = self._process
            self._process = None
        if proc is None:
            return
        _terminate(proc)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
