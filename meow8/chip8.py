#!/usr/bin/env python3
"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                🐱 Meow8 - CHIP-8 interpreter core ("Meow Machine")            ║
╚═══════════════════════════════════════════════════════════════════════════════╝

The fetch-decode-execute engine and its state model:
- 4KB memory with the hex glyph table resident at 0x000
- V0-VF registers, I index register, program counter
- growable call stack, delay/sound timers
- 64x32 boolean display buffer (XOR sprite drawing, clipped at the edges)

The engine has no clock, no renderer and no keyboard of its own. A caller
supplies the key snapshot with set_input(), calls step() once per tick and
reads display() / should_signal_audio() afterwards.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

DISPLAY_W, DISPLAY_H = 64, 32          # CHIP-8 native resolution

MEMORY_SIZE = 4096                      # 4KB RAM
PROGRAM_START = 0x200                   # Programs load at 0x200
FONT_START = 0x000                      # Glyph table base address
GLYPH_BYTES = 5                         # Bytes per hex digit glyph
NUM_REGISTERS = 16                      # V0-VF registers
NUM_KEYS = 16                           # 16 hex keys
FLAG = 0xF                              # VF doubles as carry/borrow/collision

# CHIP-8 Font (4x5 pixels, stored as 5 bytes each)
FONTSET = [
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
]


# ═══════════════════════════════════════════════════════════════════════════════
# CHIP-8 CPU CORE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class CPUState:
    """CHIP-8 machine state container"""
    # Memory
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))

    # Registers
    V: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)  # V0-VF
    I: int = 0              # Index register (no wrap guard)
    PC: int = PROGRAM_START # Program counter

    # Stack (grows as needed)
    stack: List[int] = field(default_factory=list)

    # Timers (decremented once per step)
    delay_timer: int = 0
    sound_timer: int = 0

    # Display (64x32), indexed [y, x]
    display: np.ndarray = field(default_factory=lambda: np.zeros((DISPLAY_H, DISPLAY_W), dtype=bool))

    # Keypad snapshot
    keys: List[bool] = field(default_factory=lambda: [False] * NUM_KEYS)


class Chip8CPU:
    """CHIP-8 interpreter engine"""

    def __init__(self, rng: Optional[random.Random] = None):
        # Anything with getrandbits(8) works, e.g. a seeded random.Random
        self.rng = rng if rng is not None else random.Random()
        self.state = CPUState()
        self._load_fontset()

    def _load_fontset(self):
        """Load built-in font sprites to memory"""
        for i, byte in enumerate(FONTSET):
            self.state.memory[FONT_START + i] = byte

    def reset(self):
        """Reset CPU to initial state"""
        self.state = CPUState()
        self._load_fontset()

    # ─── Host interface ───

    def load(self, data: bytes) -> int:
        """Copy a program image to 0x200, dropping bytes past the end of memory.

        Returns the number of bytes stored. Nothing else is reset.
        """
        data = bytes(data[:MEMORY_SIZE - PROGRAM_START])
        self.state.memory[PROGRAM_START:PROGRAM_START + len(data)] = data
        logger.debug("loaded %d program bytes at $%03X", len(data), PROGRAM_START)
        return len(data)

    def set_input(self, key_state: Sequence[bool]):
        """Replace the keypad snapshot used by the next step()"""
        keys = [bool(pressed) for pressed in key_state]
        if len(keys) != NUM_KEYS:
            raise ValueError(f"expected {NUM_KEYS} key states, got {len(keys)}")
        self.state.keys = keys

    def display(self) -> np.ndarray:
        """Read-only copy of the (32, 64) pixel grid"""
        frame = self.state.display.copy()
        frame.flags.writeable = False
        return frame

    def should_signal_audio(self) -> bool:
        return self.state.sound_timer > 0

    def step(self):
        """Execute one fetch-decode-execute cycle, then tick the timers"""
        opcode = self.fetch()
        self.execute(opcode)
        self.update_timers()

    # ─── Memory access ───

    def _read(self, addr: int) -> int:
        if 0 <= addr < MEMORY_SIZE:
            return self.state.memory[addr]
        logger.warning("read outside memory at $%X (PC=$%03X), using 0", addr, self.state.PC)
        return 0

    def _write(self, addr: int, value: int):
        if 0 <= addr < MEMORY_SIZE:
            self.state.memory[addr] = value & 0xFF
        else:
            logger.warning("write outside memory at $%X (PC=$%03X) dropped", addr, self.state.PC)

    # ─── Execution ───

    def fetch(self) -> int:
        """Fetch next 16-bit opcode"""
        hi = self._read(self.state.PC)
        lo = self._read(self.state.PC + 1)
        self.state.PC += 2
        return (hi << 8) | lo

    def execute(self, opcode: int):
        """Decode and execute a single opcode"""
        # Extract common opcode parts
        nnn = opcode & 0x0FFF        # 12-bit address
        nn = opcode & 0x00FF         # 8-bit constant
        n = opcode & 0x000F          # 4-bit constant
        x = (opcode >> 8) & 0x0F     # 4-bit register index
        y = (opcode >> 4) & 0x0F     # 4-bit register index

        op = (opcode >> 12) & 0xF    # First nibble

        s = self.state
        V = s.V

        # ─── 0x0XXX ───
        if op == 0x0:
            if opcode == 0x00E0:
                # 00E0: CLS - Clear display
                s.display.fill(False)

            elif opcode == 0x00EE:
                # 00EE: RET - Return from subroutine
                if s.stack:
                    s.PC = s.stack.pop()

        # ─── 1NNN: JP addr ───
        elif op == 0x1:
            s.PC = nnn

        # ─── 2NNN: CALL addr ───
        elif op == 0x2:
            s.stack.append(s.PC)
            s.PC = nnn

        # ─── 3XNN: SE Vx, byte ───
        elif op == 0x3:
            if V[x] == nn:
                s.PC += 2

        # ─── 4XNN: SNE Vx, byte ───
        elif op == 0x4:
            if V[x] != nn:
                s.PC += 2

        # ─── 5XY0: SE Vx, Vy ───
        elif op == 0x5:
            if n == 0x0 and V[x] == V[y]:
                s.PC += 2

        # ─── 6XNN: LD Vx, byte ───
        elif op == 0x6:
            V[x] = nn

        # ─── 7XNN: ADD Vx, byte (no carry) ───
        elif op == 0x7:
            V[x] = (V[x] + nn) & 0xFF

        # ─── 8XYZ: ALU operations ───
        elif op == 0x8:
            self._alu(x, y, n)

        # ─── 9XY0: SNE Vx, Vy ───
        elif op == 0x9:
            if n == 0x0 and V[x] != V[y]:
                s.PC += 2

        # ─── ANNN: LD I, addr ───
        elif op == 0xA:
            s.I = nnn

        # ─── BNNN: JP V0, addr ───
        elif op == 0xB:
            s.PC = nnn + V[0]

        # ─── CXNN: RND Vx, byte ───
        elif op == 0xC:
            V[x] = self.rng.getrandbits(8) & nn

        # ─── DXYN: DRW Vx, Vy, nibble ───
        elif op == 0xD:
            self._draw_sprite(V[x], V[y], n)

        # ─── EX9E/EXA1: Key operations ───
        elif op == 0xE:
            if nn == 0x9E:
                # EX9E: SKP Vx (skip if key pressed)
                if self._key_down(V[x]):
                    s.PC += 2

            elif nn == 0xA1:
                # EXA1: SKNP Vx (skip if key not pressed)
                if not self._key_down(V[x]):
                    s.PC += 2

        # ─── FX07-FX65: Misc operations ───
        elif op == 0xF:
            self._misc(x, nn)

    def _alu(self, x: int, y: int, z: int):
        V = self.state.V

        if z == 0x0:
            # 8XY0: LD Vx, Vy
            V[x] = V[y]

        elif z == 0x1:
            # 8XY1: OR Vx, Vy
            V[x] |= V[y]

        elif z == 0x2:
            # 8XY2: AND Vx, Vy
            V[x] &= V[y]

        elif z == 0x3:
            # 8XY3: XOR Vx, Vy
            V[x] ^= V[y]

        elif z == 0x4:
            # 8XY4: ADD Vx, Vy (VF = carry)
            result = V[x] + V[y]
            V[x] = result & 0xFF
            V[FLAG] = 1 if result > 0xFF else 0

        elif z == 0x5:
            # 8XY5: SUB Vx, Vy (VF = Vx > Vy, strictly)
            V[FLAG] = 1 if V[x] > V[y] else 0
            V[x] = (V[x] - V[y]) & 0xFF

        elif z == 0x6:
            # 8XY6: SHR Vx
            V[FLAG] = V[x] & 0x1
            V[x] >>= 1

        elif z == 0x7:
            # 8XY7: SUBN Vx, Vy (VF = Vy > Vx, strictly)
            V[FLAG] = 1 if V[y] > V[x] else 0
            V[x] = (V[y] - V[x]) & 0xFF

        elif z == 0xE:
            # 8XYE: SHL Vx
            V[FLAG] = (V[x] >> 7) & 0x1
            V[x] = (V[x] << 1) & 0xFF

    def _misc(self, x: int, nn: int):
        s = self.state
        V = s.V

        if nn == 0x07:
            # FX07: LD Vx, DT
            V[x] = s.delay_timer

        elif nn == 0x0A:
            # FX0A: LD Vx, K - re-run this instruction until a key is down
            for i, pressed in enumerate(s.keys):
                if pressed:
                    V[x] = i
                    break
            else:
                s.PC -= 2

        elif nn == 0x15:
            # FX15: LD DT, Vx
            s.delay_timer = V[x]

        elif nn == 0x18:
            # FX18: LD ST, Vx
            s.sound_timer = V[x]

        elif nn == 0x1E:
            # FX1E: ADD I, Vx
            s.I += V[x]

        elif nn == 0x29:
            # FX29: LD F, Vx (point I to font sprite)
            s.I = FONT_START + (V[x] & 0xF) * GLYPH_BYTES

        elif nn == 0x33:
            # FX33: LD B, Vx (BCD)
            value = V[x]
            self._write(s.I, value // 100)
            self._write(s.I + 1, (value // 10) % 10)
            self._write(s.I + 2, value % 10)

        elif nn == 0x55:
            # FX55: LD [I], Vx (store V0-Vx)
            for i in range(x + 1):
                self._write(s.I + i, V[i])

        elif nn == 0x65:
            # FX65: LD Vx, [I] (load V0-Vx)
            for i in range(x + 1):
                V[i] = self._read(s.I + i)

    def _key_down(self, key: int) -> bool:
        # Register values past the keypad count as "not pressed"
        return key < NUM_KEYS and self.state.keys[key]

    def _draw_sprite(self, x: int, y: int, height: int):
        """Draw sprite at (x, y) with given height"""
        V = self.state.V
        V[FLAG] = 0  # Reset collision flag

        # Wrap the origin, clip everything after it
        x = x % DISPLAY_W
        y = y % DISPLAY_H

        for row in range(height):
            if y + row >= DISPLAY_H:
                break

            sprite_byte = self._read(self.state.I + row)

            for col in range(8):
                if x + col >= DISPLAY_W:
                    break

                if sprite_byte & (0x80 >> col):
                    px = x + col
                    py = y + row

                    # XOR pixel
                    if self.state.display[py, px]:
                        V[FLAG] = 1  # Collision!

                    self.state.display[py, px] ^= True

    def update_timers(self):
        """Decrement timers (once per step)"""
        if self.state.delay_timer > 0:
            self.state.delay_timer -= 1

        if self.state.sound_timer > 0:
            self.state.sound_timer -= 1
