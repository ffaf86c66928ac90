#!/usr/bin/env python3
"""
Command-line front-end: load a ROM and run it in the terminal or a window.

    python -m meow8 game.ch8                     # curses, block characters
    python -m meow8 game.ch8 --frontend window   # pygame window with glow

Keys 0-9 and a-f drive the 16-key keypad; q quits (Esc or closing the
window also quits the window front-end).
"""

import argparse
import curses
import logging
import random
import sys
import time
from pathlib import Path
from typing import Callable, Optional

import pygame

from meow8.audio import TerminalBell, ToneSpeaker
from meow8.chip8 import DISPLAY_H, DISPLAY_W, Chip8CPU
from meow8.keyboard import TerminalKeyboard, WindowKeyboard
from meow8.screen import SCALE, TerminalScreen, WindowScreen

logger = logging.getLogger(__name__)

TICK_MS = 2.0                           # One step every 2ms
TERMINAL_LOG_FILE = "meow8.log"         # curses owns stderr in terminal mode
SCREEN_MARGIN = 2                       # Terminal rows/cols above and left of the box


class Meow8Error(Exception):
    pass


class RomError(Meow8Error):
    pass


class TerminalSizeError(Meow8Error):
    pass


def read_rom(path: str) -> bytes:
    """Read a program image from disk"""
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise RomError(f"Failed to load ROM {path}: {e.strerror or e}") from e


# ═══════════════════════════════════════════════════════════════════════════════
# RUN LOOP
# ═══════════════════════════════════════════════════════════════════════════════

class SilentSpeaker:
    """Stand-in when no audio device could be opened"""

    def beep(self):
        pass


class Chip8Emulator:
    """Drives the CPU one step per tick and feeds its collaborators"""

    def __init__(self, cpu: Chip8CPU, screen, keyboard, speaker,
                 tick_seconds: float = TICK_MS / 1000.0,
                 clock: Callable[[], float] = time.perf_counter,
                 sleep: Callable[[float], None] = time.sleep):
        self.cpu = cpu
        self.screen = screen
        self.keyboard = keyboard
        self.speaker = speaker
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.sleep = sleep
        self.ticks = 0

    def tick(self):
        """One input -> step -> display -> sound cycle"""
        self.cpu.set_input(self.keyboard.get_pressed())
        self.cpu.step()
        self.screen.update(self.cpu.display())
        if self.cpu.should_signal_audio():
            self.speaker.beep()
        self.ticks += 1

    def run(self, max_ticks: Optional[int] = None):
        """Main loop, until the keyboard asks to quit"""
        while not self.keyboard.should_exit():
            if max_ticks is not None and self.ticks >= max_ticks:
                break

            start = self.clock()
            self.tick()
            elapsed = self.clock() - start

            if elapsed < self.tick_seconds:
                self.sleep(self.tick_seconds - elapsed)

        logger.info("stopped after %d ticks", self.ticks)


# ═══════════════════════════════════════════════════════════════════════════════
# FRONT-ENDS
# ═══════════════════════════════════════════════════════════════════════════════

def run_terminal(stdscr, cpu: Chip8CPU, tick_seconds: float) -> int:
    """curses front-end; called through curses.wrapper"""
    rows, cols = stdscr.getmaxyx()
    need_rows = DISPLAY_H + 2 + SCREEN_MARGIN
    need_cols = DISPLAY_W + 2 + SCREEN_MARGIN
    if rows < need_rows or cols < need_cols:
        raise TerminalSizeError(f"Terminal is {cols}x{rows}, need at least {need_cols}x{need_rows}")

    stdscr.refresh()
    window = curses.newwin(DISPLAY_H + 2, DISPLAY_W + 2, SCREEN_MARGIN, SCREEN_MARGIN)

    keyboard = TerminalKeyboard(stdscr)
    emu = Chip8Emulator(cpu, TerminalScreen(window), keyboard, TerminalBell(), tick_seconds)

    keyboard.start_listening()
    try:
        emu.run()
    finally:
        keyboard.stop_listening()
    return emu.ticks


def run_window(cpu: Chip8CPU, tick_seconds: float, scale: int = SCALE) -> int:
    """pygame front-end"""
    screen = WindowScreen(scale=scale)
    try:
        speaker = ToneSpeaker()
    except pygame.error as e:
        logger.warning("audio unavailable, running silent: %s", e)
        speaker = SilentSpeaker()

    emu = Chip8Emulator(cpu, screen, WindowKeyboard(), speaker, tick_seconds)
    try:
        emu.run()
    finally:
        if isinstance(speaker, ToneSpeaker):
            speaker.close()
        screen.close()
    return emu.ticks


# ═══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meow8",
        description="Meow8 CHIP-8 interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  meow8 pong.ch8\n"
               "  meow8 pong.ch8 --frontend window --scale 16\n"
               "  meow8 pong.ch8 --log-level DEBUG --log-file meow8.log\n",
    )
    parser.add_argument("rom", help="CHIP-8 program image to run")
    parser.add_argument("--frontend", choices=("terminal", "window"), default="terminal",
                        help="Output surface (default: terminal)")
    parser.add_argument("--tick-ms", type=float, default=TICK_MS, metavar="MS",
                        help=f"Milliseconds per instruction (default: {TICK_MS})")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the random byte source (CXNN)")
    parser.add_argument("--scale", type=int, default=SCALE, metavar="N",
                        help=f"Pixel scale factor for the window (default: {SCALE})")
    parser.add_argument("--log-level", default="WARNING",
                        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
                        help="Logging level (default: WARNING)")
    parser.add_argument("--log-file", default=None,
                        help=f"Write log output to a file (terminal default: {TERMINAL_LOG_FILE})")
    return parser


def resolve_log_file(frontend: str, log_file: Optional[str]) -> Optional[str]:
    """Where log records go; stderr (None) only when curses is not drawing"""
    if log_file is None and frontend == "terminal":
        return TERMINAL_LOG_FILE
    return log_file


def configure_logging(level: str, log_file: Optional[str]):
    logging.basicConfig(
        level=getattr(logging, level),
        filename=log_file,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, resolve_log_file(args.frontend, args.log_file))

    try:
        rom = read_rom(args.rom)
    except RomError as e:
        print(e, file=sys.stderr)
        return 1

    cpu = Chip8CPU(rng=random.Random(args.seed))
    stored = cpu.load(rom)
    if stored < len(rom):
        logger.warning("ROM truncated: %d of %d bytes fit in memory", stored, len(rom))
    logger.info("loaded %s (%d bytes)", args.rom, stored)

    tick_seconds = args.tick_ms / 1000.0

    print("🐱 Meow8 CHIP-8 interpreter")
    print("  Keypad: 0-9 a-f   Quit: q")

    try:
        if args.frontend == "window":
            ticks = run_window(cpu, tick_seconds, args.scale)
        else:
            ticks = curses.wrapper(run_terminal, cpu, tick_seconds)
    except Meow8Error as e:
        print(e, file=sys.stderr)
        return 1

    logger.info("exited after %d ticks", ticks)
    return 0


if __name__ == "__main__":
    sys.exit(main())
