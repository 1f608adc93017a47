#!/usr/bin/env python3
"""
Lo-Fi Converter - CLI Entry Point

Turn any MP3 or WAV into a lo-fi version of itself.

Usage:
    python main.py song.mp3
    python main.py song.wav --preset dusty_tape --output-dir ./lofi
    python main.py song.mp3 --vinyl-crackle 80 --beat-slowdown 40 --seed 7
    python main.py --probe song.mp3
    python main.py --server --port 8765

Features:
    - Pitch-preserving beat slowdown
    - Bass boost, bit crushing and room reverb
    - Vinyl crackle and background noise beds
    - Named presets from YAML
    - JSON-RPC server for the upload frontend
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from colorama import init, Fore, Style

from lofi_converter import (
    Effects,
    EffectsPipeline,
    LofiError,
    PresetLoader,
    normalize_effects,
    probe_duration,
)
from lofi_converter.effects import WIRE_FIELDS

init()


# Command-line flag for each slider, in wire order
SLIDER_FLAGS = {
    "vinylCrackle": "--vinyl-crackle",
    "reverb": "--reverb",
    "beatSlowdown": "--beat-slowdown",
    "bassBoost": "--bass-boost",
    "bitCrushing": "--bit-crushing",
    "backgroundNoise": "--background-noise",
}


def print_banner():
    """Print application banner."""
    banner = """
╔══════════════════════════════════════════════╗
║              LO-FI CONVERTER                 ║
║   slow it down, dust it up, warm it over     ║
╚══════════════════════════════════════════════╝
    """
    print(f"{Fore.CYAN}{banner}{Style.RESET_ALL}")


def print_info(message: str):
    """Print info message."""
    print(f"{Fore.CYAN}ℹ{Style.RESET_ALL}  {message}")


def print_warning(message: str):
    """Print warning message."""
    print(f"{Fore.YELLOW}⚠{Style.RESET_ALL}  {message}")


def print_error(message: str):
    """Print error message."""
    print(f"{Fore.RED}✗{Style.RESET_ALL}  {message}")


def print_success(message: str):
    """Print success message."""
    print(f"{Fore.GREEN}✓{Style.RESET_ALL}  {message}")


def print_effects(effects: Effects):
    """Print slider values and what they turn into."""
    normalized = normalize_effects(effects)
    print(f"\n{Fore.MAGENTA}{'─' * 50}{Style.RESET_ALL}")
    print(f"{Fore.MAGENTA}Effects:{Style.RESET_ALL}")
    print(f"   Vinyl crackle:    {effects.vinyl_crackle:3d}")
    print(f"   Reverb:           {effects.reverb:3d}")
    print(f"   Beat slowdown:    {effects.beat_slowdown:3d}  (x{normalized.beat_slowdown_ratio:.3f} tempo)")
    print(f"   Bass boost:       {effects.bass_boost:3d}  (+{normalized.bass_boost_db:.1f} dB)")
    print(f"   Bit crushing:     {effects.bit_crushing:3d}  ({normalized.bit_depth} bit)")
    print(f"   Background noise: {effects.background_noise:3d}")
    print(f"{Fore.MAGENTA}{'─' * 50}{Style.RESET_ALL}\n")


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def resolve_effects(args: argparse.Namespace) -> Effects:
    """
    Build Effects from an optional preset plus per-slider overrides.

    Raises:
        PresetLoadError: If the preset file or name is invalid
    """
    if args.preset:
        effects = PresetLoader(args.presets_file).get(args.preset)
    else:
        effects = Effects()

    overrides = {}
    for wire_name in SLIDER_FLAGS:
        attr = WIRE_FIELDS[wire_name]
        value = getattr(args, attr)
        if value is not None:
            overrides[attr] = value
    if overrides:
        effects = effects.with_values(**overrides)
    return effects


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert songs into lo-fi versions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s song.mp3
  %(prog)s song.wav --preset dusty_tape
  %(prog)s song.mp3 --vinyl-crackle 80 --bit-crushing 0 --seed 42
  %(prog)s --probe song.mp3
  %(prog)s --list-presets
  %(prog)s --server --port 8765

Sliders:
  Every slider takes 0-100. Values outside the range are clamped.
  Stages whose slider is near zero are skipped; with every slider
  at zero the input is copied unchanged.
        """,
    )

    parser.add_argument(
        "input",
        type=str,
        nargs="?",
        help="Audio file to convert (.mp3 or .wav)",
    )

    # Effects
    parser.add_argument(
        "-p", "--preset",
        type=str,
        help="Start from a named preset (see --list-presets)",
    )
    parser.add_argument(
        "--presets-file",
        type=str,
        help="Preset YAML/JSON file (default: bundled presets)",
    )
    for wire_name, flag in SLIDER_FLAGS.items():
        parser.add_argument(
            flag,
            dest=WIRE_FIELDS[wire_name],
            type=int,
            metavar="N",
            help=f"{wire_name} slider (0-100)",
        )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the noise beds (same seed, same output)",
    )

    # Output
    parser.add_argument(
        "-o", "--output-dir",
        type=str,
        help="Output directory (default: next to the input)",
    )

    # Other modes
    parser.add_argument(
        "--probe",
        type=str,
        metavar="PATH",
        help="Print the duration of an audio file in seconds and exit",
    )
    parser.add_argument(
        "--list-presets",
        action="store_true",
        help="List available presets and exit",
    )
    parser.add_argument(
        "--server",
        action="store_true",
        help="Run the JSON-RPC server",
    )
    parser.add_argument(
        "--host",
        type=str,
        help="Server bind address (default: LOFI_HOST or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Server port (default: LOFI_PORT or 8765)",
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--no-banner",
        action="store_true",
        help="Suppress banner output",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON (suppresses other output)",
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.server:
        from lofi_converter.server import run_jsonrpc_server
        run_jsonrpc_server(host=args.host, port=args.port, verbose=args.verbose or None)
        return 0

    configure_logging(args.verbose)

    if args.probe:
        duration = probe_duration(args.probe)
        if args.json:
            print(json.dumps({"path": args.probe, "duration": duration}))
        else:
            print(duration)
        return 0 if duration > 0 else 1

    if args.list_presets:
        try:
            presets = PresetLoader(args.presets_file).load_all()
        except LofiError as e:
            print_error(str(e))
            return 1
        if args.json:
            print(json.dumps({name: fx.to_dict() for name, fx in presets.items()}, indent=2))
        else:
            for name, fx in sorted(presets.items()):
                values = ", ".join(f"{k}={v}" for k, v in fx.to_dict().items())
                print(f"  {Fore.GREEN}{name:<12}{Style.RESET_ALL} {values}")
        return 0

    if not args.input:
        parser.error("an input file is required unless --probe, --list-presets or --server is given")

    if not args.no_banner and not args.json:
        print_banner()

    try:
        effects = resolve_effects(args)

        if not args.json:
            print_info(f"Input: {args.input}")
            if args.preset:
                print_info(f"Preset: {args.preset}")
            print_effects(effects)

        pipeline = EffectsPipeline(output_dir=args.output_dir)
        output_path = pipeline.transform(args.input, effects, seed=args.seed)

        if args.json:
            print(json.dumps({
                "success": True,
                "output": output_path,
                "duration": probe_duration(output_path),
                "effects": effects.to_dict(),
            }, indent=2))
        else:
            print_success(f"Lo-fi version written to {output_path}")
            print_info(f"Duration: {probe_duration(output_path)}s")
            print()
        return 0

    except KeyboardInterrupt:
        if not args.json:
            print_warning("\nConversion cancelled by user")
        return 130

    except LofiError as e:
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}, indent=2))
        else:
            print_error(f"Conversion failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
