#!/usr/bin/env python3
"""
termwave - terminal waveform visualizer for internet radio streams

Decodes a stream with ffmpeg, plays it with ffplay (or the in-process audio
tap), and draws a live RMS waveform in the terminal with the current
"Now playing" title above it.

Usage:
    ./termwave.py [stream_url] [options]
    ffmpeg -i song.mp3 -ac 1 -ar 44100 -f s16le - | ./termwave.py --stdin

Controls:
    Ctrl-C: Quit
"""

import argparse
import logging
import signal
import sys
import threading

from rich.console import Console

from config import CONFIG_FILE, load_config, load_stream_url
from ffmpeg_tools import FFplayPlayer
from terminal import AnsiTerminal, NullTerminal, write
from visualizer import StreamCancelled, TrackUpdater, Visualizer

DEFAULT_STREAM_URL = "http://s2-webradio.rockantenne.de/rockantenne"

logger = logging.getLogger("termwave")


def build_parser():
    parser = argparse.ArgumentParser(
        description="termwave - terminal waveform visualizer for internet radio streams"
    )
    parser.add_argument(
        "url",
        nargs="?",
        default=None,
        help="Stream URL (default: [stream] url from config, else a demo station)"
    )
    parser.add_argument("--width", type=int, default=None, help="Canvas width in columns (default: 60)")
    parser.add_argument("--height", type=int, default=None, help="Canvas height in rows (default: 12)")
    parser.add_argument("--fps", type=int, default=None, help="Target frames per second (default: 30)")
    parser.add_argument("--chunk-size", type=int, default=None, help="Samples per frame (default: 1024)")
    parser.add_argument("--sample-rate", type=int, default=None, help="Decode sample rate in Hz (default: 44100)")
    parser.add_argument("--smooth", type=float, default=None, dest="smooth_factor",
                        help="Smoothing factor 0..1; 1 = no smoothing (default: 0.9)")
    parser.add_argument("--char", default=None, help="Bar glyph (default: |)")
    parser.add_argument("--spacing", type=int, default=None, dest="bar_spacing",
                        help="Columns per bar (default: 1)")
    parser.add_argument("--amplify", type=float, default=None, help="Amplitude multiplier (default: 2.5)")
    parser.add_argument("--no-status", action="store_false", dest="show_status", default=None,
                        help="Hide the status line under the waveform")

    audio = parser.add_mutually_exclusive_group()
    audio.add_argument("--no-audio", action="store_true", help="Visualize only, do not play audio")
    audio.add_argument("--tap", action="store_true",
                       help="Play the decoded PCM in-process (sounddevice) instead of ffplay")

    parser.add_argument("--stdin", action="store_true",
                        help="Read raw mono s16le PCM from stdin instead of a URL")
    parser.add_argument("--plain", action="store_true",
                        help="Do not emit cursor control codes (for pipes and logs)")
    parser.add_argument("--track-interval", type=float, default=3.0,
                        help="Seconds between now-playing lookups, 0 to disable (default: 3)")
    parser.add_argument("--config", default=CONFIG_FILE, help="Config file path (default: termwave.cfg)")
    parser.add_argument("--log-file", default="", help="Path to log file (default: stderr, warnings only)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level when --log-file is given")
    return parser


def configure_logging(args):
    """Logs never go to stdout; it carries the frames."""
    if args.log_file:
        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            filename=args.log_file,
        )
    else:
        logging.basicConfig(
            level=logging.WARNING,
            format="[%(levelname)s] %(name)s: %(message)s",
            stream=sys.stderr,
        )


def config_from_args(args):
    """Defaults < config file < command line."""
    base = load_config(args.config)
    return base.merged(
        width=args.width,
        height=args.height,
        fps=args.fps,
        chunk_size=args.chunk_size,
        sample_rate=args.sample_rate,
        smooth_factor=args.smooth_factor,
        char=args.char,
        bar_spacing=args.bar_spacing,
        amplify=args.amplify,
        show_status=args.show_status,
    ).resolve()


def install_signal_handlers(visualizer, cancel_event):
    """
    Stop on SIGINT/SIGTERM.

    `cancel_event` is the one later passed to the stream loop, so a signal
    that arrives before the loop starts still cancels it.
    """
    def _stop():
        cancel_event.set()
        visualizer.stop()

    def _handle(signum, frame):
        # stop() takes locks; keep it off the interrupted frame
        threading.Thread(target=_stop, daemon=True).start()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
    return _handle


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args)
    console = Console(stderr=True)

    try:
        config = config_from_args(args)
    except ValueError as e:
        console.print(f"[red bold]Error:[/] {e}")
        sys.exit(2)

    url = args.url or load_stream_url(args.config) or DEFAULT_STREAM_URL
    terminal = NullTerminal() if args.plain else AnsiTerminal()

    tap = None
    if args.tap:
        from audio_tap import AudioTap
        tap = AudioTap(sample_rate=config.sample_rate)

    visualizer = Visualizer(
        config=config,
        output=sys.stdout,
        terminal=terminal,
        on_chunk=tap.queue_pcm if tap else None,
    )
    player = None
    updater = None
    exit_code = 0

    cancel = threading.Event()
    install_signal_handlers(visualizer, cancel)
    write(sys.stdout, terminal.clear_screen())

    try:
        if tap:
            tap.start()
        if args.stdin:
            visualizer.start_from_reader(sys.stdin.buffer, cancel_event=cancel)
        else:
            if not (args.no_audio or tap):
                player = FFplayPlayer()
                try:
                    player.start(url)
                except RuntimeError as e:
                    logger.warning("playback disabled: %s", e)
            if args.track_interval > 0:
                updater = TrackUpdater(visualizer, interval=args.track_interval)
                updater.start()
            visualizer.start_from_url(url, cancel_event=cancel)
    except (StreamCancelled, KeyboardInterrupt):
        pass
    except (RuntimeError, OSError) as e:
        logger.error("termwave stopped: %s", e)
        console.print(f"[red bold]Error:[/] {e}")
        exit_code = 1
    finally:
        visualizer.stop()
        if updater:
            updater.stop()
        if player:
            player.stop()
        if tap:
            tap.stop()
        write(sys.stdout, terminal.show_cursor())

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
