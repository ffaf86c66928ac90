"""
Display output for the interpreter.

TerminalScreen draws the 64x32 grid as block characters inside a boxed
curses window. WindowScreen opens a pygame window and draws the grid with
a phosphor glow. Both take the (height, width) boolean frame returned by
Chip8CPU.display() and only redraw when it changed.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
import pygame

from meow8.chip8 import DISPLAY_H, DISPLAY_W

logger = logging.getLogger(__name__)

PIXEL_ON = "█"
PIXEL_OFF = " "

SCALE = 12                              # Window pixels per CHIP-8 pixel
GLOW_UPSCALE = 4                        # Internal upscale for glow blur
BLOOM_STRENGTH = 0.55                   # Glow intensity (0.0-1.0)
BLUR_RADIUS = 1                         # Extra box blur passes (0-3)

COLORS = {
    'bg_dark': (15, 15, 25),
    'fg_green': (0, 255, 128),
    'fg_amber': (255, 176, 0),
    'fg_white': (220, 220, 220),
    'fg_blue': (100, 180, 255),
}


def frame_lines(frame: np.ndarray) -> List[str]:
    """One string per display row, block for on and blank for off"""
    return ["".join(PIXEL_ON if on else PIXEL_OFF for on in row) for row in frame]


class _FrameCache:
    """Remembers the last drawn frame so unchanged ticks skip the redraw"""

    def __init__(self):
        self.last: Optional[np.ndarray] = None

    def changed(self, frame: np.ndarray) -> bool:
        if self.last is not None and np.array_equal(self.last, frame):
            return False
        self.last = np.array(frame, dtype=bool)
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# TERMINAL (curses)
# ═══════════════════════════════════════════════════════════════════════════════

class TerminalScreen:
    """Draws frames into a curses window sized (DISPLAY_H + 2, DISPLAY_W + 2)"""

    def __init__(self, window):
        self.window = window
        self._cache = _FrameCache()
        self.window.box()
        self.window.refresh()

    def update(self, frame: np.ndarray):
        if not self._cache.changed(frame):
            return
        for y, line in enumerate(frame_lines(frame)):
            # 1-cell offset keeps the border intact
            self.window.addstr(y + 1, 1, line)
        self.window.box()
        self.window.refresh()


# ═══════════════════════════════════════════════════════════════════════════════
# WINDOW (pygame) - GLOW EFFECT SYSTEM
# ═══════════════════════════════════════════════════════════════════════════════

class GlowRenderer:
    """Phosphor glow/bloom post-processing effect"""

    def __init__(self, width: int = DISPLAY_W, height: int = DISPLAY_H, scale: int = SCALE,
                 fg_color: Tuple[int, int, int] = COLORS['fg_green'],
                 bg_color: Tuple[int, int, int] = COLORS['bg_dark']):
        self.width = width
        self.height = height
        self.scale = scale
        self.fg_color = fg_color
        self.bg_color = bg_color
        self.bloom_strength = BLOOM_STRENGTH
        self.blur_radius = BLUR_RADIUS
        self.glow_upscale = GLOW_UPSCALE

        self.final_size = (width * scale, height * scale)

    @staticmethod
    def box_blur(arr: np.ndarray, passes: int = 1) -> np.ndarray:
        """Box blur using rolling averages"""
        a = arr.astype(np.float32)
        for _ in range(passes):
            a = (np.roll(a, 1, axis=1) + a + np.roll(a, -1, axis=1)) / 3.0
            a = (np.roll(a, 1, axis=0) + a + np.roll(a, -1, axis=0)) / 3.0
        return a

    def glow_intensity(self, frame: np.ndarray) -> np.ndarray:
        """Blurred luminance at glow_upscale resolution, (H*k, W*k) in 0..1"""
        k = self.glow_upscale
        up = np.kron(frame.astype(np.float32), np.ones((k, k), dtype=np.float32))
        glow = self.box_blur(up, passes=1 + self.blur_radius)
        return np.clip(glow * self.bloom_strength, 0.0, 1.0)

    def _colorize(self, intensity: np.ndarray) -> pygame.Surface:
        # surfarray wants (width, height, 3)
        rgb = np.multiply.outer(intensity.T, np.array(self.fg_color, dtype=np.float32))
        return pygame.surfarray.make_surface(rgb.astype(np.uint8))

    def render(self, frame: np.ndarray) -> Tuple[pygame.Surface, pygame.Surface]:
        """Convert a (height, width) boolean frame to (base, glow) surfaces"""
        base = pygame.transform.scale(self._colorize(frame.astype(np.float32)), self.final_size)
        glow = pygame.transform.smoothscale(self._colorize(self.glow_intensity(frame)), self.final_size)
        return base, glow

    def create_background(self) -> pygame.Surface:
        """Create CRT-style background with scanlines"""
        surf = pygame.Surface(self.final_size)
        surf.fill(self.bg_color)

        line_color = tuple(min(c + 5, 255) for c in self.bg_color)
        for y in range(0, self.final_size[1], 2):
            pygame.draw.line(surf, line_color, (0, y), (self.final_size[0], y))

        return surf


class WindowScreen:
    """pygame window showing the display with the glow effect"""

    def __init__(self, scale: int = SCALE, fg_color: Tuple[int, int, int] = COLORS['fg_green']):
        pygame.display.init()
        pygame.display.set_caption("🐱 Meow8 CHIP-8")
        self.renderer = GlowRenderer(scale=scale, fg_color=fg_color)
        self.surface = pygame.display.set_mode(self.renderer.final_size)
        self.background = self.renderer.create_background()
        self._cache = _FrameCache()
        logger.debug("window opened at %dx%d", *self.renderer.final_size)

    def update(self, frame: np.ndarray):
        if not self._cache.changed(frame):
            return
        base_surf, glow_surf = self.renderer.render(frame)

        self.surface.blit(self.background, (0, 0))
        # Glow layer additive, crisp pixels on top
        self.surface.blit(glow_surf, (0, 0), special_flags=pygame.BLEND_ADD)
        self.surface.blit(base_surf, (0, 0), special_flags=pygame.BLEND_MAX)
        pygame.display.flip()

    def close(self):
        pygame.display.quit()
