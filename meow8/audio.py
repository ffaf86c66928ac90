"""Sound cue for the interpreter's sound timer."""

import curses

import numpy as np
import pygame


TONE_HZ = 440
SAMPLE_RATE = 44100
TONE_MS = 50
VOLUME = 0.25


class TerminalBell:
    """Rings the terminal bell"""

    def beep(self):
        curses.beep()


def square_wave(freq: int = TONE_HZ, rate: int = SAMPLE_RATE, ms: int = TONE_MS,
                volume: float = VOLUME) -> np.ndarray:
    """Signed 16-bit mono square wave samples"""
    t = np.arange(int(rate * ms / 1000))
    period = rate / freq
    amplitude = int(volume * (2 ** 15 - 1))
    return np.where((t % period) < period / 2, amplitude, -amplitude).astype(np.int16)


class ToneSpeaker:
    """Plays a short square-wave tone through pygame.mixer"""

    def __init__(self, freq: int = TONE_HZ):
        pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=1)
        self.tone = pygame.mixer.Sound(buffer=square_wave(freq).tobytes())
        self.channel = None

    def beep(self):
        # Called every tick the timer is nonzero; let the current tone finish
        if self.channel is not None and self.channel.get_busy():
            return
        self.channel = self.tone.play()

    def close(self):
        pygame.mixer.quit()
