"""
CLI entry point for the F2Heal stimulation generator.

Usage:
    f2heal -s <seconds> [options]
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

from f2heal.config import Mode, StimulationConfig
from f2heal.errors import ConfigurationError, EncodingError
from f2heal.pipeline import StimulationPipeline

# argparse dest -> StimulationConfig field
CONFIG_ARGS = {
    "seconds": "duration",
    "samplerate": "sample_rate",
    "mode": "mode",
    "stimfreq": "frequency",
    "block_samples": "block_length",
    "block_ms": "block_ms",
    "pulse_ms": "pulse_ms",
    "phase_fraction": "phase_fraction",
    "phase_offset_samples": "phase_offset",
    "phase_offset_ms": "phase_offset_ms",
    "right_stimfreq": "right_frequency",
    "right_offset_ms": "right_offset_ms",
    "mirror_right": "mirror_right",
    "asymmetric": "asymmetric",
    "pauses": "pauses",
    "pause_period": "pause_period",
    "shuffle": "shuffle",
    "seed": "seed",
    "bit_depth": "bit_depth",
    "gain": "gain",
    "compression": "compression_level",
}


class _ProgressBar:
    """
    Progress callback for the encoder.

    Redraws a bar in place on a terminal. When piped, prints one line each
    time progress crosses another 1/steps of the total.
    """

    def __init__(self, width: int = 35, steps: int = 20):
        self.width = width
        self.steps = steps
        self._last_step = -1

    def __call__(self, current: int, total: int):
        pct = current / max(total, 1) * 100
        if sys.stdout.isatty():
            filled = int(self.width * current / max(total, 1))
            bar = "#" * filled + "-" * (self.width - filled)
            sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
            sys.stdout.flush()
            if current >= total:
                sys.stdout.write("\n")
            return

        step = current * self.steps // max(total, 1)
        if step > self._last_step:
            self._last_step = step
            print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def _setup_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="f2heal",
        description="Create F2Heal 8-channel FLAC stimulation output",
    )

    parser.add_argument(
        "-s", "--seconds", type=float, default=None,
        help="Duration of the output in seconds",
    )
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output FLAC path (default: <output-dir>/<name from parameters>.flac)",
    )
    parser.add_argument(
        "--output-dir", type=Path, default=Path("output"),
        help="Directory for the generated file name (default: output)",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="JSON file with base configuration; other options override it",
    )

    # Timing
    parser.add_argument(
        "-m", "--mode", type=str, default=None,
        choices=[m.value for m in Mode],
        help="Timing mode (default: blocked)",
    )
    parser.add_argument("--samplerate", type=int, default=None, help="Sample rate in Hz (default: 44100)")
    parser.add_argument("--stimfreq", type=float, default=None, help="Stimulation frequency in Hz (default: 250)")
    parser.add_argument("--block-ms", type=float, default=None, help="Block length per finger in ms (default: 166.5)")
    parser.add_argument("--block-samples", type=int, default=None, help="Block length per finger in samples")
    parser.add_argument(
        "--pulse-ms", type=float, default=None,
        help="Active stimulation within each block in ms (blocked mode, default: whole block)",
    )
    parser.add_argument(
        "--phase-fraction", type=float, default=None,
        help="Cycle fraction between neighbouring fingers (phase-shifted mode, default: 0.25)",
    )
    parser.add_argument(
        "--phase-offset-ms", type=float, default=None,
        help="Fixed offset between neighbouring fingers in ms (fixed-phase-shifted mode)",
    )
    parser.add_argument(
        "--phase-offset-samples", type=int, default=None,
        help="Fixed offset between neighbouring fingers in samples (fixed-phase-shifted mode)",
    )

    # Hands
    parser.add_argument("--right-stimfreq", type=float, default=None, help="Right hand frequency in Hz")
    parser.add_argument("--right-offset-ms", type=float, default=None, help="Right hand start delay in ms")
    parser.add_argument(
        "--mirror-right", action="store_true", default=None,
        help="Run the right hand fingers in reverse order",
    )
    parser.add_argument(
        "--asymmetric", action="store_true", default=None,
        help="Allow different timing on the left and right hand",
    )

    # Pauses and randomization
    parser.add_argument(
        "-p", "--pauses", type=int, action="append", default=None,
        help="Cycle (within the pause period) with no stimulation. Can be used more than once.",
    )
    parser.add_argument(
        "--pause-period", type=int, default=None,
        help="Duration in cycles of one pause period (default: 5)",
    )
    parser.add_argument(
        "--shuffle", action="store_true", default=None,
        help="Randomize finger order every cycle (blocked mode)",
    )
    parser.add_argument("-r", "--seed", type=int, default=None, help="Random seed (default: from entropy)")

    # Output format
    parser.add_argument("--bit-depth", type=int, default=None, choices=[16, 24], help="Bits per sample (default: 16)")
    parser.add_argument("--gain", type=float, default=None, help="Output level, 0-1 of full scale (default: 1.0)")
    parser.add_argument("--compression", type=int, default=None, help="FLAC compression level 0-8 (default: 8)")
    parser.add_argument("--manifest", action="store_true", help="Write a JSON manifest next to the output")

    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Output verbosity. Can be used more than once.",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> StimulationConfig:
    """Build a StimulationConfig from a base file and command-line overrides."""
    base = StimulationConfig()
    if args.config is not None:
        try:
            with open(args.config, "r", encoding="utf-8") as f:
                base = StimulationConfig.from_dict(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"cannot read config file {args.config}: {e}") from e

    overrides = {}
    for dest, name in CONFIG_ARGS.items():
        value = getattr(args, dest)
        if value is not None:
            overrides[name] = value

    # block_length wins over block_ms, so an explicit --block-ms must clear
    # a block_length coming from the config file.
    if "block_ms" in overrides and "block_length" not in overrides:
        overrides["block_length"] = None

    return replace(base, **overrides)


def display_config(config: StimulationConfig):
    print(f"Generating {config.mode.value} FLAC output for:")
    print("   Channels [L/R]          : 4/4")
    print(f"   Sample Rate             : {config.sample_rate}Hz")
    print(f"   Duration                : {config.duration:g}s")
    print(f"   Bit depth               : {config.bit_depth}")
    print("")
    print("   Stimulation details:")
    print(f"     Stimulation Frequency : {config.frequency:g}Hz")
    print(f"     Block Length          : {config.block_samples()} samples")
    if config.mode is Mode.BLOCKED:
        print(f"     Pulse Width           : {config.pulse_samples()} samples")
    elif config.mode is Mode.PHASE_SHIFTED:
        print(f"     Phase Fraction        : {config.phase_fraction:g}")
    else:
        print(f"     Phase Offset          : {config.phase_offset_samples()} samples")
    if config.asymmetric or config.mirror_right:
        right = config.frequency if config.right_frequency is None else config.right_frequency
        print(f"     Right Frequency       : {right:g}Hz")
        print(f"     Right Offset          : {config.right_offset_ms:g}ms")
        print(f"     Right Mirrored        : {config.mirror_right}")
    print("")
    if not config.pauses:
        print("   Without pauses")
    else:
        print(f"   Pause cycle period      : {config.pause_period}")
        print(f"   Pause on cycles         : {list(config.pauses)}")
    print("")
    if config.shuffle:
        print(f"   Random seed             : {config.seed}")
    else:
        print("   Fixed finger order")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = config_from_args(args)
        pipeline = StimulationPipeline(config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    config = pipeline.config
    if args.verbose > 0:
        display_config(config)

    for warning in config.warnings():
        print(f"\nWARNING: {warning}")

    output = args.output
    if output is None:
        output = args.output_dir / config.filename()

    print(f"Writing output to: {output}")
    t0 = time.time()

    try:
        result = pipeline.render(
            output,
            progress_callback=_ProgressBar(),
            write_manifest=args.manifest,
        )
    except EncodingError as e:
        print(f"Error: {e}", file=sys.stderr)
        if output.exists():
            output.unlink()
        return 1

    elapsed = time.time() - t0
    file_size_mb = output.stat().st_size / 1024 / 1024

    print(f"\nDone! {file_size_mb:.1f} MB")
    print(f"  {result['n_frames']} frames ({result['duration']:.1f}s) in {elapsed:.1f}s")
    print(f"  Output: {output}")
    if "manifest_path" in result:
        print(f"  Manifest: {result['manifest_path']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
