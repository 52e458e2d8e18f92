#!/usr/bin/env python3
"""Unit tests for visualizer configuration."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

import config as config_module
from config import VisualizerConfig, load_config, load_stream_url


def test_defaults_fill_unset_fields():
    cfg = VisualizerConfig().resolve()
    assert cfg.width == config_module.DEFAULT_WIDTH == 60
    assert cfg.height == 12
    assert cfg.sample_rate == 44100
    assert cfg.chunk_size == 1024
    assert cfg.fps == 30
    assert cfg.smooth_factor == pytest.approx(0.9)
    assert cfg.char == "|"
    assert cfg.bar_spacing == 1
    assert cfg.amplify == pytest.approx(2.5)
    assert cfg.show_status is True
    assert cfg.resolved


def test_explicit_zero_smoothing_is_kept():
    cfg = VisualizerConfig(smooth_factor=0).resolve()
    assert cfg.smooth_factor == 0.0


def test_explicit_false_status_is_kept():
    cfg = VisualizerConfig(show_status=False).resolve()
    assert cfg.show_status is False


@pytest.mark.parametrize("field,value", [
    ("width", 0),
    ("height", -1),
    ("sample_rate", 0),
    ("chunk_size", 0),
    ("fps", 0),
    ("bar_spacing", 0),
    ("smooth_factor", 1.5),
    ("smooth_factor", -0.1),
    ("amplify", 0),
    ("char", ""),
    ("width", 12.5),
    ("amplify", float("inf")),
    ("amplify", float("nan")),
    ("smooth_factor", float("nan")),
])
def test_invalid_values_raise(field, value):
    with pytest.raises(ValueError):
        VisualizerConfig(**{field: value}).resolve()


def test_resolved_config_is_read_only():
    cfg = VisualizerConfig(width=10).resolve()
    with pytest.raises(AttributeError):
        cfg.width = 20


def test_merged_ignores_none_and_keeps_base():
    base = VisualizerConfig(width=40, height=8)
    merged = base.merged(width=None, height=16, fps=60)
    assert merged.width == 40
    assert merged.height == 16
    assert merged.fps == 60
    assert merged.chunk_size is None

    with pytest.raises(TypeError):
        base.merged(colour="red")


def test_derived_values():
    cfg = VisualizerConfig(fps=25, chunk_size=512).resolve()
    assert cfg.frame_interval == pytest.approx(0.04)
    assert cfg.chunk_bytes == 1024


def test_load_config_missing_file(tmp_path):
    cfg = load_config(str(tmp_path / "nope.cfg"))
    assert cfg == VisualizerConfig()


def test_load_config_reads_sections_and_skips_bad_values(tmp_path):
    path = tmp_path / "termwave.cfg"
    path.write_text(
        "[display]\n"
        "width = 80\n"
        "height = twelve\n"
        "char = #\n"
        "smooth_factor = 0\n"
        "show_status = false\n"
        "[audio]\n"
        "sample_rate = 48000\n"
        "[stream]\n"
        "url = http://example.invalid/live\n"
    )
    cfg = load_config(str(path))
    assert cfg.width == 80
    assert cfg.height is None
    assert cfg.char == "#"
    assert cfg.smooth_factor == 0.0
    assert cfg.show_status is False
    assert cfg.sample_rate == 48000

    resolved = cfg.resolve()
    assert resolved.height == 12
    assert resolved.smooth_factor == 0.0

    assert load_stream_url(str(path)) == "http://example.invalid/live"


def test_load_config_ignores_broken_file(tmp_path):
    path = tmp_path / "broken.cfg"
    path.write_text("this is not an ini file\n")
    assert load_config(str(path)) == VisualizerConfig()
    assert load_stream_url(str(path)) is None


def test_undecodable_cfg_file_is_ignored(tmp_path):
    path = tmp_path / "latin1.cfg"
    path.write_bytes(b"[display]\nchar = \xff\xfe\n[stream]\nurl = http://\xe9.invalid/\n")
    assert load_config(str(path)) == VisualizerConfig()
    assert load_stream_url(str(path)) is None
