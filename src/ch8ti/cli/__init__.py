"""
ch8ti Command-Line Interface
============================

This package provides the command-line tool for the ch8ti packager:

- **ch8prep**: Package CHIP-8 ROMs as TI-68k variable files, inspect
  packaged files and extract ROMs from them

The tool is a Click-based CLI application with help and error reporting.
"""

__all__ = ["ch8prep"]
