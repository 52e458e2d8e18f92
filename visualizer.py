#!/usr/bin/env python3
"""
termwave visualizer core.

Reads fixed-size s16le blocks from a byte source, reduces each block to a
per-column RMS profile, smooths it, and writes one text frame per block at
the configured frame rate.

Threads:
    - stream loop: the caller of start_from_url()/start_from_reader()
    - track updater (optional): periodic ffprobe lookups
    - readers: get_waveform()/render()/get_track() from any thread
"""

import io
import logging
import sys
import threading
import time

from config import VisualizerConfig
from ffmpeg_tools import FFmpegDecoder
from metadata import FFprobeMetadata, MetadataError, track_from_tags
from pcm import PCMReducer
from renderer import FrameRenderer
from terminal import AnsiTerminal, write
from waveform_state import WaveformState

logger = logging.getLogger(__name__)


class StreamCancelled(Exception):
    """The stream loop ended because cancellation was requested."""


class Visualizer:
    """Live waveform display for a PCM stream."""

    # Back-off after EOF or a short read before retrying.
    EOF_RETRY_S = 0.05

    def __init__(self, config=None, output=None, terminal=None, decoder=None,
                 metadata=None, on_chunk=None):
        """
        Args:
            config: VisualizerConfig (resolved here if needed)
            output: text sink for frames (default: sys.stdout)
            terminal: terminal-control codes (default: AnsiTerminal)
            decoder: FFmpegDecoder used by start_from_url (default: new one per start)
            metadata: FFprobeMetadata used by fetch_track
            on_chunk: optional callable receiving each raw PCM block
        """
        config = config if config is not None else VisualizerConfig()
        if not config.resolved:
            config = config.resolve()
        self.config = config
        self.output = output if output is not None else sys.stdout
        self.terminal = terminal if terminal is not None else AnsiTerminal()
        self.renderer = FrameRenderer(config)
        self.state = WaveformState(config.width)
        self.decoder = decoder
        self.metadata = metadata if metadata is not None else FFprobeMetadata()
        self.on_chunk = on_chunk

        self.stream_url = ""
        self.frames_rendered = 0
        self.short_reads = 0

        self._running = False
        self._cancel = threading.Event()
        self._run_lock = threading.Lock()
        self._output_lock = threading.Lock()
        self._active_decoder = None

    @property
    def is_running(self):
        return self._running

    def _begin(self, cancel_event):
        with self._run_lock:
            if self._running:
                raise RuntimeError("visualizer is already running")
            self._cancel = cancel_event if cancel_event is not None else threading.Event()
            self._running = True
            self.frames_rendered = 0
            self.short_reads = 0
        self.state.reset()

    def start_from_url(self, stream_url, cancel_event=None):
        """
        Decode `stream_url` with ffmpeg and visualize it until stopped.

        Blocks the calling thread. The ffmpeg process is torn down on every
        exit path.

        Raises:
            RuntimeError: ffmpeg could not be started
            StreamCancelled: stop() was called or `cancel_event` was set
            OSError: hard read error on the decoder pipe
        """
        decoder = self.decoder or FFmpegDecoder(sample_rate=self.config.sample_rate)
        self.stream_url = stream_url
        self._begin(cancel_event)
        try:
            with decoder:
                pipe = decoder.start(stream_url)
                with self._run_lock:
                    self._active_decoder = decoder
                return self._process_stream(self._buffered(pipe))
        finally:
            with self._run_lock:
                self._active_decoder = None
            self._running = False

    def start_from_reader(self, reader, cancel_event=None):
        """Visualize raw s16le PCM from any binary file-like object until stopped."""
        self._begin(cancel_event)
        try:
            return self._process_stream(self._buffered(reader))
        finally:
            self._running = False

    def stop(self):
        """Request cancellation; also kills the decoder so a blocked read returns."""
        self._cancel.set()
        self._running = False
        with self._run_lock:
            decoder = self._active_decoder
        if decoder is not None:
            decoder.stop()

    def get_waveform(self):
        """Copy of the current smoothed profile."""
        return self.state.profile_snapshot()

    def render(self):
        """Current frame as plain text (no cursor control codes)."""
        return self.renderer.render_frame(self.state.profile_snapshot())

    def get_track(self):
        return self.state.track

    def fetch_track(self):
        """
        Refresh track info from the stream's metadata.

        Any probe failure leaves the cached track untouched and returns it.
        """
        previous = self.state.track
        if not self.stream_url:
            return previous
        try:
            tags = self.metadata.fetch_tags(self.stream_url)
        except MetadataError as exc:
            logger.debug("metadata fetch failed: %s", exc)
            return previous
        track = track_from_tags(tags, previous)
        self.state.set_track(track)
        return track

    def write_output(self, text):
        """Write to the output sink; serialized with the frame writer."""
        with self._output_lock:
            write(self.output, text)

    def _buffered(self, reader):
        if isinstance(reader, io.RawIOBase):
            return io.BufferedReader(reader, buffer_size=self.config.chunk_bytes * 4)
        return reader

    def _read_chunk(self, reader, size):
        """
        Read exactly `size` bytes.

        Returns None on EOF or a short read (partial bytes are dropped).
        """
        parts = []
        remaining = size
        while remaining > 0:
            try:
                data = reader.read(remaining)
            except (OSError, ValueError):
                # stop() closes the decoder pipe under a blocked read
                if self._cancel.is_set():
                    return None
                raise
            if not data:
                return None
            parts.append(data)
            remaining -= len(data)
        return b"".join(parts)

    def _process_stream(self, reader):
        config = self.config
        reducer = PCMReducer(config.width, config.chunk_size)
        interval = config.frame_interval
        cancel = self._cancel

        while True:
            if cancel.is_set():
                self._running = False
                raise StreamCancelled("stream stopped")

            start_time = time.perf_counter()

            raw = self._read_chunk(reader, reducer.chunk_bytes)
            if raw is None:
                self.short_reads += 1
                cancel.wait(self.EOF_RETRY_S)
                continue

            if self.on_chunk is not None:
                self.on_chunk(raw)

            profile = reducer.reduce(raw)
            self.state.apply_profile(profile, config.smooth_factor)

            frame = self.render()
            self.write_output(self.terminal.frame_prefix() + frame)
            self.frames_rendered += 1

            elapsed = time.perf_counter() - start_time
            if elapsed < interval:
                cancel.wait(interval - elapsed)


class TrackUpdater:
    """Background thread that refreshes the now-playing line periodically."""

    DEFAULT_INTERVAL_S = 3.0

    def __init__(self, visualizer, interval=None):
        self.visualizer = visualizer
        self.interval = float(interval) if interval else self.DEFAULT_INTERVAL_S
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def update_once(self):
        track = self.visualizer.fetch_track()
        text = f"Now playing: {track.raw}" if track.is_known else ""
        self.visualizer.write_output(self.visualizer.terminal.status_line(text))
        return track

    def _run(self):
        while not self._stop.wait(self.interval):
            self.update_once()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread:
            # a probe in flight is bounded by its own timeout
            probe_timeout = getattr(self.visualizer.metadata, "timeout", FFprobeMetadata.DEFAULT_TIMEOUT_S)
            self._thread.join(timeout=probe_timeout + 1.0)
            self._thread = None
