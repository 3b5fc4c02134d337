"""
ch8ti Configuration
===================

Packaging defaults. Configuration can come from:
- Default values (defined here)
- Environment variables
- Command-line options (applied by the CLI on top of the above)

Environment Variables
---------------------
- CH8TI_FOLDER: default on-calculator folder
- CH8TI_CALC: default target model (ti89, ti92p, v200)
- CH8TI_VERBOSE: enable debug logging when set to 1/true/yes
"""

from dataclasses import dataclass
from typing import Final, Optional
import os

# Folder the calculator creates by default
DEFAULT_FOLDER: Final[str] = "main"

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass
class PrepConfig:
    """
    Defaults for the ch8prep tool.

    Attributes:
        folder: On-calculator folder for packaged ROMs
        calc: Default target model name, or None to require one
        verbose: Log at debug level
    """
    folder: str = DEFAULT_FOLDER
    calc: Optional[str] = None
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "PrepConfig":
        """Create a configuration with environment variable overrides applied."""
        config = cls()

        if folder := os.environ.get("CH8TI_FOLDER"):
            config.folder = folder

        if calc := os.environ.get("CH8TI_CALC"):
            config.calc = calc.lower()

        if verbose := os.environ.get("CH8TI_VERBOSE"):
            config.verbose = verbose.lower() in _TRUE_VALUES

        return config
