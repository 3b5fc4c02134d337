"""
ch8prep - CHIP-8 ROM Packager Command-Line Interface
====================================================

This module implements the command-line interface for packaging CHIP-8
ROMs as TI-68k variable files.

Commands
--------
- **pack**: Compress a ROM and write a variable file
- **info**: Show the header and checksum of a variable file
- **extract**: Recover the ROM from a variable file

Usage Examples
--------------
Package a ROM for the TI-89 (writes pong.89y):
    $ ch8prep pack pong.ch8 -c ti89

Choose the variable name and folder:
    $ ch8prep pack roms/BRIX -c v200 -n brix -f games

Inspect a packaged file:
    $ ch8prep info pong.89y

Extract the ROM again:
    $ ch8prep extract pong.89y -o pong.ch8

Exit Codes
----------
0 - Success
1 - Packaging or file format error (e.g. ROM larger than 4096 bytes)
2 - Invalid arguments or missing files
3 - Internal error
"""

import logging
from pathlib import Path
from typing import Optional

import click

from ch8ti import __version__
from ch8ti.cli.errors import handle_cli_exception
from ch8ti.config import PrepConfig
from ch8ti.varfile import (
    CalcModel,
    VarFileBuilder,
    VarFileParser,
    derive_var_name,
    resolve_output_path,
)

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Holds the configuration (defaults and environment overrides) and
    the verbosity flag.
    """

    def __init__(self) -> None:
        self.config: PrepConfig = PrepConfig.from_env()
        self.verbose: bool = self.config.verbose

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.INFO
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


class CalcModelChoice(click.ParamType):
    """
    Click parameter type for calculator model selection.

    Accepts: ti89, ti92p, v200 (case-insensitive)
    """
    name = "calc"

    def convert(self, value: str, param: Optional[click.Parameter],
                ctx: Optional[click.Context]) -> CalcModel:
        """Convert string to CalcModel."""
        if isinstance(value, CalcModel):
            return value

        try:
            return CalcModel(value.lower())
        except ValueError:
            self.fail(
                f"Invalid calculator '{value}'. "
                f"Choose from: {', '.join(m.value for m in CalcModel)}",
                param, ctx
            )


CALC_MODEL = CalcModelChoice()


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="ch8prep")
@pass_context
def main(ctx: Context, verbose: bool) -> None:
    """
    Package CHIP-8 ROMs for TI-89, TI-92 Plus and Voyage 200 calculators.

    \b
    Commands:
      pack      Compress a ROM into a variable file
      info      Show variable file details
      extract   Recover the ROM from a variable file

    \b
    Examples:
      ch8prep pack pong.ch8 -c ti89
      ch8prep info pong.89y
      ch8prep extract pong.89y -o pong.ch8
    """
    ctx.verbose = ctx.verbose or verbose
    ctx.setup_logging()


# =============================================================================
# Pack Command
# =============================================================================

@main.command("pack")
@click.argument(
    "rom_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-c", "--calc",
    type=CALC_MODEL,
    default=None,
    help="Target calculator: ti89, ti92p, v200 (default: $CH8TI_CALC)",
)
@click.option(
    "-n", "--var-name",
    type=str,
    default=None,
    help="On-calculator variable name, clipped to 8 characters "
         "(default: ROM filename)",
)
@click.option(
    "-f", "--folder",
    type=str,
    default=None,
    help="On-calculator folder, clipped to 8 characters (default: main)",
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file; the model's extension is appended if missing",
)
@pass_context
def cmd_pack(
    ctx: Context,
    rom_file: Path,
    calc: Optional[CalcModel],
    var_name: Optional[str],
    folder: Optional[str],
    output: Optional[Path],
) -> None:
    """
    Compress ROM_FILE and write it as a calculator variable file.

    \b
    Examples:
      ch8prep pack pong.ch8 -c ti89
      ch8prep pack BRIX -c ti92p -n brix -o out/brix
    """
    try:
        if calc is None:
            if ctx.config.calc is None:
                raise click.BadParameter(
                    "no calculator given (use --calc or set CH8TI_CALC)",
                    param_hint="'-c' / '--calc'",
                )
            calc = CALC_MODEL.convert(ctx.config.calc, None, None)

        name = var_name if var_name is not None else derive_var_name(rom_file)
        folder = folder if folder is not None else ctx.config.folder
        output_path = resolve_output_path(rom_file, calc, output)

        rom = rom_file.read_bytes()
        logger.debug(f"Read {len(rom)} bytes from {rom_file}")

        builder = VarFileBuilder(calc=calc, name=name, folder=folder)
        bytes_written = builder.build_to_file(rom, output_path)

        click.echo(
            f"Created {output_path} ({calc.get_description()}, "
            f"{len(rom)} -> {bytes_written} bytes)"
        )

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose, error_type="Packaging")


# =============================================================================
# Info Command
# =============================================================================

@main.command("info")
@click.argument(
    "var_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@pass_context
def cmd_info(ctx: Context, var_file: Path) -> None:
    """
    Show details of a packaged variable file.

    \b
    Example:
      ch8prep info pong.89y
    """
    try:
        parser = VarFileParser.from_file(var_file)
        info = parser.get_info()

        click.echo(f"File:       {var_file}")
        click.echo(f"Calculator: {info['calc']}")
        click.echo(f"Variable:   {info['folder']}\\{info['name']}")
        click.echo(f"Version:    {info['version']}")
        click.echo(f"Size:       {info['file_size']} bytes "
                   f"({info['payload_size']} compressed)")
        status = "OK" if info["checksum_valid"] else "MISMATCH"
        click.echo(f"Checksum:   0x{info['checksum']:04X} ({status})")

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# Extract Command
# =============================================================================

@main.command("extract")
@click.argument(
    "var_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Output ROM file path (required)",
)
@pass_context
def cmd_extract(ctx: Context, var_file: Path, output: Path) -> None:
    """
    Decompress the ROM stored in a variable file.

    \b
    Example:
      ch8prep extract pong.89y -o pong.ch8
    """
    try:
        parser = VarFileParser.from_file(var_file)
        if not parser.verify_checksum():
            click.echo(
                f"Warning: checksum mismatch (stored 0x{parser.stored_checksum:04X}, "
                f"calculated 0x{parser.calculated_checksum:04X})",
                err=True,
            )

        rom = parser.extract_rom()
        output.write_bytes(rom)
        click.echo(f"Extracted {output} ({len(rom)} bytes)")

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


if __name__ == "__main__":
    main()
