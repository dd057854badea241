from pathlib import Path
from typing import Optional, List, Any, Callable, Tuple
import argparse
import sys

from pydantic import ValidationError

from gaussianizer.Options import Options
from gaussianizer.TextureProcessor import TextureProcessor
from gaussianizer.utils import Bcolors, console_log

IS_TTY = sys.stdin.isatty()


#########################################
#            GENERIC PROMPT             #
#########################################

def prompt(
    label: str,
    default: Optional[Any] = None,
    validator: Optional[Callable[[str], Tuple[bool, str]]] = None,
    max_attempts: int = 3,
) -> Optional[str]:
    """Prompt user input with validation and default.

    Args:
        label: Message displayed to the user.
        default: Default value returned if Enter is pressed.
        validator: Optional callable returning (ok, msg) for validation.
        max_attempts: Number of invalid answers tolerated before giving up.

    Returns:
        The answer, `default` on an empty answer, or None if the user quits or
        runs out of attempts.
    """
    default_str = '' if default is None else f" (Enter=[{default}])"
    for _ in range(max_attempts):
        console_log(f"{label}{default_str}, q=quit:", color=Bcolors.BOLD)
        if IS_TTY:
            print("> ", end="", flush=True)
        try:
            raw = input().strip()
        except EOFError:
            return default
        if raw.lower() == "q":
            console_log("Exit requested (q).", color=Bcolors.FAIL)
            return None
        if raw == "":
            return default
        if validator:
            ok, msg = validator(raw)
            if not ok:
                console_log(f"✗ {msg}", indent_level=1, color=Bcolors.FAIL)
                continue
        return raw
    return None


def _validator_file_exists(v: str) -> Tuple[bool, str]:
    """Validate that a file exists."""
    p = Path(v).expanduser()
    return p.is_file(), f"File not found: {p}"


#########################################
#            COMMAND LINE               #
#########################################

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gaussianizer',
        description='Precompute a Gaussianized texture and its inverse lookup table for procedural texture synthesis.')
    parser.add_argument('-i', '--in-file', type=Path, default=None,
                        help='Input texture. Prompted for when omitted.')
    parser.add_argument('-o', '--out-dir', type=Path, default=Path('./'),
                        help='Output directory (default: ./). A file path selects its parent directory.')
    parser.add_argument('--img-prefix', default=None, help='File name of the Gaussianized image, without .tif')
    parser.add_argument('--lut-prefix', default=None, help='File name of the inverse LUT, without .tif')
    parser.add_argument('--lut-width', type=int, default=None, help='Number of LUT entries (default: image width)')
    parser.add_argument('--tie-break', choices=['index', 'unstable'], default='index',
                        help='Ordering of pixels with equal intensities (default: index)')
    parser.add_argument('--workers', type=int, default=None, help='Thread pool size (default: one per channel)')
    parser.add_argument('--plot', action='store_true', help='Save a histogram of the Gaussianized image')
    parser.add_argument('--no-log', action='store_true', help='Do not write the log file')
    parser.add_argument('-v', '--verbose', type=int, choices=[-1, 0, 1, 2, 3], default=1,
                        help='-1 quiet, 0 progress bar, 1 steps, 2 details, 3 debug (default: 1)')
    return parser


def options_from_args(args: argparse.Namespace) -> Options:
    """Build Options from parsed arguments, asking for the input file if it is missing."""
    in_file = args.in_file
    if in_file is None:
        answer = prompt("Select input texture (path)", validator=_validator_file_exists)
        if answer is None:
            raise FileNotFoundError("No input file specified")
        in_file = Path(answer)
    try:
        return Options(
            input_file=in_file,
            output_folder=args.out_dir,
            img_prefix=args.img_prefix,
            lut_prefix=args.lut_prefix,
            lut_width=args.lut_width,
            tie_break=args.tie_break,
            n_workers=args.workers,
            save_plots=args.plot,
            save_log=not args.no_log,
            verbose=args.verbose,
        )
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        options = options_from_args(args)
        TextureProcessor(options=options)
    except Exception as e:
        exe_name = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else 'gaussianizer'
        print(f"[{exe_name}] Gaussianizer Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
