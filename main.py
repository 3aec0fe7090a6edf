#!/usr/bin/env python3
"""
PCG Monitor – main entry point.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --threshold INT      Initial peak threshold (default: 10000)
    --cooldown INT       Refractory period in samples (default: 3000)
    --window FLOAT       Waveform window in seconds (default: 5)
    --sample-rate INT    Capture sample rate in Hz (default: 44100)
    --chunk INT          Samples per read (default: 1376)
    --device DEV         Input device index or name (default: system default)
    --wav PATH           Replay a mono 16-bit .wav file instead of the microphone
    --realtime           Pace --wav playback at its sample rate
    --list-devices       Print input devices and exit
    --headless           Run without display window (log BPM to stdout)
    --save PATH          Save the last rendered frame as PNG on exit
    --log-level LEVEL    DEBUG, INFO, WARNING or ERROR (default: INFO)

Keyboard shortcuts (when a window is open)
------------------------------------------
    q / ESC  – quit
    + / -    – raise / lower the peak threshold
    r        – reset waveform, peak counter and heart rate
    s        – save a single frame as PNG
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import cv2

from pcg_monitor.audio_source import (
    MicrophoneSource,
    SampleSource,
    WaveFileSource,
    list_input_devices,
)
from pcg_monitor.config import PipelineConfig
from pcg_monitor.errors import ConfigError, SourceAcquisitionError
from pcg_monitor.ingestion import IngestionWorker
from pcg_monitor.pipeline import PipelineState
from pcg_monitor.visualizer import Visualizer

logger = logging.getLogger("pcg_monitor")

WINDOW_NAME = "Phonocardiogram"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _device_arg(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Heart-rate monitor for phonocardiogram audio",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--threshold", type=int, default=10000,
                        help="Initial peak threshold (absolute amplitude)")
    parser.add_argument("--cooldown", type=int, default=3000,
                        help="Refractory period after a peak, in samples")
    parser.add_argument("--window", type=float, default=5.0,
                        help="Waveform window in seconds")
    parser.add_argument("--sample-rate", type=int, default=44100,
                        help="Capture sample rate in Hz")
    parser.add_argument("--chunk", type=int, default=1376,
                        help="Samples per read")
    parser.add_argument("--device", type=_device_arg, default=None,
                        help="Input device index or name")
    parser.add_argument("--wav", type=Path, default=None,
                        help="Replay a mono 16-bit .wav file")
    parser.add_argument("--realtime", action="store_true",
                        help="Pace --wav playback at its sample rate")
    parser.add_argument("--list-devices", action="store_true",
                        help="Print input devices and exit")
    parser.add_argument("--headless", action="store_true",
                        help="No display window; log BPM to stdout only")
    parser.add_argument("--save", type=Path, default=None,
                        help="Save the last rendered frame to this PNG path")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        sample_rate=args.sample_rate,
        window_seconds=args.window,
        cooldown_samples=args.cooldown,
        threshold=args.threshold,
        chunk_samples=args.chunk,
    )


def build_source(args: argparse.Namespace, config: PipelineConfig) -> SampleSource:
    if args.wav is not None:
        return WaveFileSource(args.wav, chunk_samples=config.chunk_samples, realtime=args.realtime)
    return MicrophoneSource(
        sample_rate=config.sample_rate,
        chunk_samples=config.chunk_samples,
        device=args.device,
    )


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> int:
    if args.list_devices:
        try:
            devices = list_input_devices()
        except SourceAcquisitionError as exc:
            logger.error("%s", exc)
            return 1
        for dev in devices:
            print(f"[{dev['index']}] {dev['name']}  "
                  f"channels={dev['channels']}  default_sr={dev['default_samplerate']:.0f} Hz")
        return 0

    try:
        config = build_config(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    source = build_source(args, config)
    try:
        source.open()
    except SourceAcquisitionError as exc:
        logger.error("Cannot start audio source: %s", exc)
        return 1

    # A replayed file dictates its own rate.
    if source.sample_rate != config.sample_rate:
        logger.info("Using source sample rate %d Hz.", source.sample_rate)
        config.sample_rate = source.sample_rate
        config.validate()

    state = PipelineState(config)
    worker = IngestionWorker(source, state)
    vis = Visualizer(window_seconds=config.window_seconds)
    frame = None

    logger.info("Starting PCG monitor.  Press 'q' or ESC to quit.")
    worker.start()

    if not args.headless:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(WINDOW_NAME, vis.w, vis.h)

    try:
        if args.headless:
            while worker.is_running:
                time.sleep(1.0)
                snap = state.read_snapshot()
                bpm = snap.bpm if snap.bpm is not None else "--"
                ts = time.strftime("%H:%M:%S")
                print(f"[{ts}] peaks={snap.peak_count}  bpm={bpm}  "
                      f"threshold={snap.threshold}  t={snap.elapsed_seconds:.1f}s")
            if args.save:
                frame = vis.draw(state.read_snapshot())
        else:
            while True:
                frame = vis.draw(state.read_snapshot())
                cv2.imshow(WINDOW_NAME, frame)
                key = cv2.waitKey(30) & 0xFF
                if key == ord("s"):
                    fname = f"pcg_{int(time.time())}.png"
                    cv2.imwrite(fname, frame)
                    logger.info("Saved snapshot: %s", fname)
                elif not vis.handle_key(key, state):
                    logger.info("Quit requested by user.")
                    break

    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        worker.stop()
        if args.save and frame is not None:
            cv2.imwrite(str(args.save), frame)
            logger.info("Saved frame to %s", args.save)
        if not args.headless:
            cv2.destroyAllWindows()

    snap = state.read_snapshot()
    logger.info("Final: peaks=%d bpm=%s", snap.peak_count, snap.bpm)
    return 1 if worker.error is not None else 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )
    return run(args)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
