"""Meow8 - a CHIP-8 interpreter with terminal and pygame front-ends."""

from meow8.chip8 import Chip8CPU, CPUState

__version__ = "0.1.0"

__all__ = ["Chip8CPU", "CPUState", "__version__"]
