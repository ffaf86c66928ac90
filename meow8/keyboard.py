"""
Keypad input for the interpreter.

The engine only ever sees a 16-entry snapshot. This module produces it:
StickyKeypad keeps a key "down" for a short hold time after each observed
press, so presses coming from a terminal (which never reports key release)
are still visible to a loop that polls once per tick.

Two pollers feed it:
    TerminalKeyboard  - curses getch() on a background thread
    WindowKeyboard    - pygame event queue, pumped by the run loop
"""

import curses
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

import pygame

from meow8.chip8 import NUM_KEYS

logger = logging.getLogger(__name__)

# Key symbol i drives keypad index i
KEYS = "0123456789abcdef"
QUIT_KEY = "q"
KEY_HOLD_MS = 10
POLL_INTERVAL = 0.001


def key_to_index(symbol: str) -> Optional[int]:
    """Keypad index for a hex symbol, or None"""
    if len(symbol) != 1:
        return None
    idx = KEYS.find(symbol.lower())
    return idx if idx >= 0 else None


class StickyKeypad:
    """Thread-safe key state where each press is held for at least hold_ms"""

    def __init__(self, hold_ms: float = KEY_HOLD_MS,
                 clock: Callable[[], float] = time.monotonic):
        self.hold = hold_ms / 1000.0
        self.clock = clock
        self._lock = threading.Lock()
        self._keys = [False] * NUM_KEYS
        self._pressed_at = [0.0] * NUM_KEYS
        self._down = [False] * NUM_KEYS
        self._exit = False

    def press(self, idx: int):
        if not 0 <= idx < NUM_KEYS:
            return
        with self._lock:
            self._keys[idx] = True
            self._pressed_at[idx] = self.clock()

    def key_down(self, idx: int):
        """Press that lasts until key_up(), for sources that report releases"""
        if not 0 <= idx < NUM_KEYS:
            return
        with self._lock:
            self._keys[idx] = True
            self._down[idx] = True
            self._pressed_at[idx] = self.clock()

    def key_up(self, idx: int):
        """End a key_down(); the key still lasts out its hold time"""
        if not 0 <= idx < NUM_KEYS:
            return
        with self._lock:
            self._down[idx] = False

    def release_expired(self):
        """Release keys not seen pressed for longer than the hold time"""
        now = self.clock()
        with self._lock:
            for i in range(NUM_KEYS):
                if self._keys[i] and not self._down[i] and now - self._pressed_at[i] > self.hold:
                    self._keys[i] = False

    def get_pressed(self) -> List[bool]:
        """Snapshot of all 16 keys"""
        self.release_expired()
        with self._lock:
            return list(self._keys)

    def is_pressed(self, idx: int) -> bool:
        if not 0 <= idx < NUM_KEYS:
            return False
        return self.get_pressed()[idx]

    def request_exit(self):
        with self._lock:
            self._exit = True

    def should_exit(self) -> bool:
        with self._lock:
            return self._exit


# ═══════════════════════════════════════════════════════════════════════════════
# TERMINAL (curses)
# ═══════════════════════════════════════════════════════════════════════════════

class TerminalKeyboard:
    """Polls a curses window for key presses on a background thread"""

    def __init__(self, window, keypad: Optional[StickyKeypad] = None):
        self.window = window
        self.keypad = keypad or StickyKeypad()
        self._running = threading.Event()
        self._listener: Optional[threading.Thread] = None

    def start_listening(self):
        self.window.nodelay(True)
        self._running.set()
        self._listener = threading.Thread(target=self._listen, name="chip8-keyboard", daemon=True)
        self._listener.start()
        logger.debug("keyboard listener started")

    def stop_listening(self):
        self._running.clear()
        if self._listener is not None:
            self._listener.join()
            self._listener = None
        logger.debug("keyboard listener stopped")

    def poll(self):
        """Drain every pending key from the window"""
        while self._running.is_set():
            code = self.window.getch()
            if code == curses.ERR:
                break
            self.handle_symbol(chr(code) if 0 <= code < 0x110000 else "")

    def handle_symbol(self, symbol: str):
        if symbol == QUIT_KEY:
            self.keypad.request_exit()
            return
        idx = key_to_index(symbol)
        if idx is not None:
            self.keypad.press(idx)

    def _listen(self):
        while self._running.is_set():
            self.keypad.release_expired()
            self.poll()
            time.sleep(POLL_INTERVAL)

    def get_pressed(self) -> List[bool]:
        return self.keypad.get_pressed()

    def should_exit(self) -> bool:
        return self.keypad.should_exit()


# ═══════════════════════════════════════════════════════════════════════════════
# WINDOW (pygame)
# ═══════════════════════════════════════════════════════════════════════════════

class WindowKeyboard:
    """Feeds the keypad from the pygame event queue.

    pygame events must be read on the thread that owns the window, so there is
    no listener thread here: get_pressed() drains the queue first. Keys stay
    down from KEYDOWN to KEYUP.
    """

    def __init__(self, keypad: Optional[StickyKeypad] = None):
        self.keypad = keypad or StickyKeypad()
        # KEYUP carries no reliable text, so remember which index each key drove
        self._held: Dict[int, int] = {}

    def handle_event(self, event):
        if event.type == pygame.QUIT:
            self.keypad.request_exit()

        elif event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE or event.unicode == QUIT_KEY:
                self.keypad.request_exit()
                return
            idx = key_to_index(event.unicode)
            if idx is not None:
                self._held[event.key] = idx
                self.keypad.key_down(idx)

        elif event.type == pygame.KEYUP:
            idx = self._held.pop(event.key, None)
            if idx is not None:
                self.keypad.key_up(idx)

    def pump(self):
        for event in pygame.event.get():
            self.handle_event(event)

    def get_pressed(self) -> List[bool]:
        self.pump()
        return self.keypad.get_pressed()

    def should_exit(self) -> bool:
        return self.keypad.should_exit()
