#!/usr/bin/env python3
"""
Stream metadata lookup for termwave via the external `ffprobe` CLI.

Internet radio streams carry ICY metadata; ffprobe exposes it under
format.tags, e.g. {"StreamTitle": "Artist - Title", "icy-name": "Station"}.

Environment overrides:
  - TERMWAVE_FFPROBE_BIN: binary name/path (default: ffprobe)
  - TERMWAVE_METADATA_TIMEOUT: probe timeout in seconds (default: 5)
"""

import json
import logging
import os
import shutil
import subprocess
from collections import namedtuple

logger = logging.getLogger(__name__)

TITLE_SEPARATOR = " - "


class TrackInfo(namedtuple("TrackInfo", ["title", "artist", "raw"])):
    """Now-playing info. Empty strings mean unknown."""

    __slots__ = ()

    def __new__(cls, title="", artist="", raw=""):
        return super().__new__(cls, title, artist, raw)

    @property
    def is_known(self):
        return bool(self.raw)


class MetadataError(Exception):
    """Raised when the metadata probe fails or returns an unusable payload."""


def parse_stream_title(value):
    """
    Split a StreamTitle value into a TrackInfo.

    "Artist - Title" splits on the first separator; anything else is taken as
    the title with no artist.
    """
    artist, sep, title = value.partition(TITLE_SEPARATOR)
    if sep:
        return TrackInfo(title=title.strip(), artist=artist.strip(), raw=value)
    return TrackInfo(title=value, artist="", raw=value)


def track_from_tags(tags, previous=None):
    """
    Build track info from a probe tag mapping.

    Falls back to the station name when there is no StreamTitle, and to
    `previous` when neither key is present.
    """
    previous = previous if previous is not None else TrackInfo()
    if not isinstance(tags, dict):
        return previous

    title = tags.get("StreamTitle")
    if title is not None:
        return parse_stream_title(str(title))

    station = tags.get("icy-name")
    if station is not None:
        station = str(station)
        return TrackInfo(title=station, artist=previous.artist, raw=station)

    return previous


class FFprobeMetadata:
    """Query stream tags with ffprobe under a bounded timeout."""

    DEFAULT_TIMEOUT_S = 5.0

    def __init__(self, binary_name=None, timeout=None):
        self.binary_name = (
            binary_name
            or os.environ.get("TERMWAVE_FFPROBE_BIN", "ffprobe").strip()
            or "ffprobe"
        )
        self._binary_path = shutil.which(self.binary_name)

        if timeout is None:
            try:
                timeout = float(os.environ.get("TERMWAVE_METADATA_TIMEOUT", ""))
            except ValueError:
                timeout = self.DEFAULT_TIMEOUT_S
        self.timeout = max(0.1, float(timeout))
        self.last_error = ""

    @property
    def available(self):
        return self._binary_path is not None

    @property
    def unavailable_reason(self):
        if self.available:
            return ""
        return f"{self.binary_name} not found in PATH"

    def build_command(self, stream_url):
        return [
            self._binary_path or self.binary_name,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            stream_url,
        ]

    def fetch_tags(self, stream_url):
        """
        Return the format tag mapping for `stream_url`.

        Raises:
            MetadataError: probe missing, failed, timed out, or returned
                something that is not the expected JSON shape.
        """
        if not self.available:
            self.last_error = self.unavailable_reason
            raise MetadataError(self.last_error)

        cmd = self.build_command(stream_url)
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            self.last_error = f"ffprobe timed out after {self.timeout:.1f}s"
            raise MetadataError(self.last_error) from exc
        except OSError as exc:
            self.last_error = f"Failed to run ffprobe: {exc}"
            raise MetadataError(self.last_error) from exc

        if result.returncode != 0:
            self.last_error = f"ffprobe exited with code {result.returncode}"
            raise MetadataError(self.last_error)

        try:
            payload = json.loads(result.stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as exc:
            self.last_error = f"ffprobe returned invalid JSON: {exc}"
            raise MetadataError(self.last_error) from exc

        fmt = payload.get("format") if isinstance(payload, dict) else None
        if not isinstance(fmt, dict):
            self.last_error = "ffprobe output has no format section"
            raise MetadataError(self.last_error)

        tags = fmt.get("tags") or {}
        if not isinstance(tags, dict):
            self.last_error = "ffprobe format.tags is not an object"
            raise MetadataError(self.last_error)

        self.last_error = ""
        return tags
