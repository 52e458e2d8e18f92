#!/usr/bin/env python3
"""
Visualizer configuration for termwave.

Every field is optional: None means "not provided" and is filled from the
DEFAULT_* constants by resolve(). An explicit 0 is kept and validated, so
smooth_factor=0 (frozen display) is distinct from leaving it unset.
"""

import configparser
import math
import os

DEFAULT_WIDTH = 60
DEFAULT_HEIGHT = 12
DEFAULT_SAMPLE_RATE = 44100
DEFAULT_CHUNK_SIZE = 1024
DEFAULT_FPS = 30
DEFAULT_SMOOTH_FACTOR = 0.9
DEFAULT_CHAR = "|"
DEFAULT_BAR_SPACING = 1
DEFAULT_AMPLIFY = 2.5
DEFAULT_SHOW_STATUS = True

CONFIG_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'termwave.cfg')

_FIELDS = (
    "width", "height", "sample_rate", "chunk_size", "fps",
    "smooth_factor", "char", "bar_spacing", "amplify", "show_status",
)

_DEFAULTS = {
    "width": DEFAULT_WIDTH,
    "height": DEFAULT_HEIGHT,
    "sample_rate": DEFAULT_SAMPLE_RATE,
    "chunk_size": DEFAULT_CHUNK_SIZE,
    "fps": DEFAULT_FPS,
    "smooth_factor": DEFAULT_SMOOTH_FACTOR,
    "char": DEFAULT_CHAR,
    "bar_spacing": DEFAULT_BAR_SPACING,
    "amplify": DEFAULT_AMPLIFY,
    "show_status": DEFAULT_SHOW_STATUS,
}

# cfg file section/option -> (field, parser)
_CFG_OPTIONS = {
    ("display", "width"): ("width", "int"),
    ("display", "height"): ("height", "int"),
    ("display", "fps"): ("fps", "int"),
    ("display", "char"): ("char", "str"),
    ("display", "bar_spacing"): ("bar_spacing", "int"),
    ("display", "amplify"): ("amplify", "float"),
    ("display", "smooth_factor"): ("smooth_factor", "float"),
    ("display", "show_status"): ("show_status", "bool"),
    ("audio", "sample_rate"): ("sample_rate", "int"),
    ("audio", "chunk_size"): ("chunk_size", "int"),
}


class VisualizerConfig:
    """
    Display and sampling parameters.

    Build with keyword arguments (omitted ones stay None), then call
    resolve() to get a complete, validated, read-only copy.
    """

    __slots__ = _FIELDS + ("_frozen",)

    def __init__(self, width=None, height=None, sample_rate=None, chunk_size=None,
                 fps=None, smooth_factor=None, char=None, bar_spacing=None,
                 amplify=None, show_status=None):
        object.__setattr__(self, "_frozen", False)
        self.width = width
        self.height = height
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.fps = fps
        self.smooth_factor = smooth_factor
        self.char = char
        self.bar_spacing = bar_spacing
        self.amplify = amplify
        self.show_status = show_status

    def __setattr__(self, name, value):
        if self._frozen:
            raise AttributeError(f"resolved config is read-only (tried to set {name!r})")
        object.__setattr__(self, name, value)

    def __repr__(self):
        fields = ", ".join(f"{name}={getattr(self, name)!r}" for name in _FIELDS)
        return f"VisualizerConfig({fields})"

    def __eq__(self, other):
        if not isinstance(other, VisualizerConfig):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    __hash__ = None

    @property
    def resolved(self):
        return self._frozen

    @property
    def frame_interval(self):
        """Seconds per frame at the configured FPS."""
        return 1.0 / self.fps

    @property
    def chunk_bytes(self):
        return self.chunk_size * 2

    def as_dict(self):
        return {name: getattr(self, name) for name in _FIELDS}

    def merged(self, **overrides):
        """New unresolved config with non-None `overrides` layered on top."""
        values = self.as_dict()
        for name, value in overrides.items():
            if name not in _DEFAULTS:
                raise TypeError(f"unknown config field {name!r}")
            if value is not None:
                values[name] = value
        return VisualizerConfig(**values)

    def resolve(self):
        """Return a validated, read-only config with defaults filled in."""
        values = {
            name: (_DEFAULTS[name] if value is None else value)
            for name, value in self.as_dict().items()
        }
        _validate(values)
        config = VisualizerConfig(**values)
        object.__setattr__(config, "_frozen", True)
        return config


def _validate(values):
    for name in ("width", "height", "sample_rate", "chunk_size", "fps"):
        value = values[name]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")

    spacing = values["bar_spacing"]
    if isinstance(spacing, bool) or not isinstance(spacing, int) or spacing < 1:
        raise ValueError(f"bar_spacing must be an integer >= 1, got {spacing!r}")

    smooth = float(values["smooth_factor"])
    if not math.isfinite(smooth) or not 0.0 <= smooth <= 1.0:
        raise ValueError(f"smooth_factor must be within [0, 1], got {smooth}")
    values["smooth_factor"] = smooth

    amplify = float(values["amplify"])
    if not math.isfinite(amplify) or amplify <= 0.0:
        raise ValueError(f"amplify must be a finite number > 0, got {amplify}")
    values["amplify"] = amplify

    char = values["char"]
    if not isinstance(char, str) or not char:
        raise ValueError("char must be a non-empty string")

    values["show_status"] = bool(values["show_status"])


def load_config(path=None):
    """
    Read display/audio settings from an INI file.

    Missing file, unknown options and unparsable values are ignored; the
    returned config is unresolved so CLI arguments can still be merged in.
    """
    path = path or CONFIG_FILE
    config = VisualizerConfig()
    if not os.path.exists(path):
        return config

    parser = configparser.ConfigParser()
    try:
        parser.read(path, encoding="utf-8")
    except (ValueError, configparser.Error):
        return config

    values = {}
    for (section, option), (field, kind) in _CFG_OPTIONS.items():
        if not parser.has_option(section, option):
            continue
        try:
            if kind == "int":
                values[field] = parser.getint(section, option)
            elif kind == "float":
                values[field] = parser.getfloat(section, option)
            elif kind == "bool":
                values[field] = parser.getboolean(section, option)
            else:
                raw = parser.get(section, option)
                if raw:
                    values[field] = raw
        except (ValueError, configparser.Error):
            pass
    return config.merged(**values)


def load_stream_url(path=None):
    """Return [stream] url from the cfg file, or None."""
    path = path or CONFIG_FILE
    if not os.path.exists(path):
        return None
    parser = configparser.ConfigParser()
    try:
        parser.read(path, encoding="utf-8")
        if parser.has_option('stream', 'url'):
            url = parser.get('stream', 'url').strip()
            return url or None
    except (ValueError, configparser.Error):
        pass
    return None
