#!/usr/bin/env python3
"""Detect tempo, beat offset and first bar of an audio file or URL.

Usage:
    python scripts/analyze.py track.mp3
    python scripts/analyze.py https://example.com/track.ogg --perf
    python scripts/analyze.py track.wav --bpm-range 70 140 --round
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from beatdetect.analysis.engine import BeatDetector
from beatdetect.config import Settings
from beatdetect.errors import BeatDetectError


def main():
    parser = argparse.ArgumentParser(description="Beat-grid detection for one track")
    parser.add_argument("source", help="Audio file path or http(s)/file URL")
    parser.add_argument("--bpm-range", nargs=2, type=float, metavar=("MIN", "MAX"),
                        default=None, help="Tempo search range (default: 90 180)")
    parser.add_argument("--round", action="store_true",
                        help="Round tempo candidates to whole BPM")
    parser.add_argument("--precision", type=int, default=None,
                        help="Decimal digits kept in the result")
    parser.add_argument("--time-signature", type=int, default=None)
    parser.add_argument("--perf", action="store_true",
                        help="Include per-stage timings")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {"round_to_integer": args.round, "instrumentation": args.perf}
    if args.bpm_range:
        overrides["min_bpm"], overrides["max_bpm"] = args.bpm_range
    if args.precision is not None:
        overrides["precision"] = args.precision
    if args.time_signature is not None:
        overrides["time_signature"] = args.time_signature

    detector = BeatDetector(Settings(**overrides))
    try:
        if "://" in args.source:
            info = detector.analyze_url(args.source)
        else:
            info = detector.analyze_file(args.source)
    except BeatDetectError as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    print(json.dumps(asdict(info), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
