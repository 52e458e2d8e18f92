#!/usr/bin/env python3
"""Unit tests for the ffmpeg decoder and ffplay player wrappers."""

import io
import os
import subprocess
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from ffmpeg_tools import FFmpegDecoder, FFplayPlayer


class _FakeProcess:
    def __init__(self, stdout=b"", hang=False):
        self.stdin = None
        self.stdout = io.BytesIO(stdout)
        self.stderr = None
        self.returncode = None
        self.terminated = False
        self.killed = False
        self.hang = hang
        self.pid = 4242

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if self.hang and not self.killed:
            raise subprocess.TimeoutExpired(cmd="ffmpeg", timeout=timeout)
        if self.returncode is None:
            self.returncode = 0
        return self.returncode

    def terminate(self):
        self.terminated = True
        if not self.hang:
            self.returncode = -15

    def kill(self):
        self.killed = True
        self.returncode = -9


def _patch_popen(monkeypatch, module, process):
    calls = {}

    def _fake_popen(cmd, stdin, stdout, stderr):
        calls['cmd'] = cmd
        calls['stdout'] = stdout
        return process

    monkeypatch.setattr(f"{module}.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(f"{module}.subprocess.Popen", _fake_popen)
    return calls


def test_decoder_command_requests_low_latency_mono_pcm(monkeypatch):
    monkeypatch.setattr("ffmpeg_tools.shutil.which", lambda name: "/usr/bin/ffmpeg")
    decoder = FFmpegDecoder(sample_rate=22050)
    cmd = decoder.build_command("http://radio.invalid/live")

    assert cmd[0] == "/usr/bin/ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "http://radio.invalid/live"
    assert cmd[cmd.index("-ac") + 1] == "1"
    assert cmd[cmd.index("-ar") + 1] == "22050"
    assert cmd[cmd.index("-f") + 1] == "s16le"
    assert cmd[cmd.index("-acodec") + 1] == "pcm_s16le"
    assert cmd[cmd.index("-fflags") + 1] == "nobuffer"
    assert cmd[cmd.index("-flags") + 1] == "low_delay"
    assert cmd[cmd.index("-probesize") + 1] == "32k"
    assert "-vn" in cmd
    assert cmd[-1] == "-"


def test_decoder_start_returns_pipe_and_context_exit_stops(monkeypatch):
    process = _FakeProcess(stdout=b"\x00\x00" * 4)
    calls = _patch_popen(monkeypatch, "ffmpeg_tools", process)

    with FFmpegDecoder(sample_rate=44100) as decoder:
        pipe = decoder.start("http://radio.invalid/live")
        assert calls['stdout'] == subprocess.PIPE
        assert pipe.read() == b"\x00\x00" * 4
        assert decoder.is_running

        with pytest.raises(RuntimeError):
            decoder.start("http://radio.invalid/other")

    assert process.terminated
    assert not decoder.is_running
    assert process.stdout.closed


def test_decoder_stop_escalates_to_kill(monkeypatch):
    process = _FakeProcess(hang=True)
    _patch_popen(monkeypatch, "ffmpeg_tools", process)

    decoder = FFmpegDecoder()
    decoder.start("http://radio.invalid/live")
    decoder.stop()
    assert process.terminated
    assert process.killed

    # second stop is a no-op
    decoder.stop()


def test_decoder_missing_binary_raises(monkeypatch):
    monkeypatch.setenv("TERMWAVE_FFMPEG_BIN", "ffmpeg-definitely-not-installed")
    decoder = FFmpegDecoder()
    assert not decoder.available
    assert "not found" in decoder.unavailable_reason
    with pytest.raises(RuntimeError):
        decoder.start("http://radio.invalid/live")
    assert "not found" in decoder.last_error


def test_decoder_launch_failure_is_runtime_error(monkeypatch):
    def _failing_popen(*args, **kwargs):
        raise OSError("permission denied")

    monkeypatch.setattr("ffmpeg_tools.shutil.which", lambda name: "/usr/bin/ffmpeg")
    monkeypatch.setattr("ffmpeg_tools.subprocess.Popen", _failing_popen)

    decoder = FFmpegDecoder()
    with pytest.raises(RuntimeError) as info:
        decoder.start("http://radio.invalid/live")
    assert "Failed to start ffmpeg" in str(info.value)
    assert isinstance(info.value.__cause__, OSError)
    assert not decoder.is_running


def test_decoder_real_process_start_stop(monkeypatch):
    monkeypatch.setenv("TERMWAVE_FFMPEG_BIN", sys.executable)
    monkeypatch.setattr(
        FFmpegDecoder,
        "build_command",
        lambda self, url: [sys.executable, "-c", "import time; time.sleep(10)"],
    )
    decoder = FFmpegDecoder()
    decoder.start("http://radio.invalid/live")
    assert decoder.is_running
    decoder.stop()
    assert not decoder.is_running


def test_player_command_and_lifecycle(monkeypatch):
    process = _FakeProcess()
    calls = _patch_popen(monkeypatch, "ffmpeg_tools", process)

    player = FFplayPlayer()
    player.start("http://radio.invalid/live")
    cmd = calls['cmd']
    assert cmd[0] == "/usr/bin/ffplay"
    assert "-nodisp" in cmd and "-autoexit" in cmd
    assert cmd[-1] == "http://radio.invalid/live"
    assert player.is_running

    player.stop()
    assert process.terminated
    assert not player.is_running


def test_player_missing_binary_raises(monkeypatch):
    monkeypatch.setenv("TERMWAVE_FFPLAY_BIN", "ffplay-definitely-not-installed")
    player = FFplayPlayer()
    with pytest.raises(RuntimeError):
        player.start("http://radio.invalid/live")
