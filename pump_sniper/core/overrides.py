"""
Operator Overrides

Three manual signals steer the active position monitor:
- RESET_TIMER: push the sell deadline a full timeout window out
- CONTINUE: stop monitoring and move on without selling
- SELL_NOW: sell 75% and stop monitoring

Each kind has its own queue. Producers (keyboard, dashboard command file)
only enqueue; the monitor drains each queue once per evaluated tick.
"""

import asyncio
import json
import logging
import sys
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional

from pump_sniper.utils.state_file import StateFileLockError, atomic_write_json, state_file_lock

logger = logging.getLogger(__name__)


class OverrideKind(Enum):
    """Types of operator overrides."""
    RESET_TIMER = "RESET_TIMER"
    CONTINUE = "CONTINUE"
    SELL_NOW = "SELL_NOW"


KEY_BINDINGS = {
    "r": OverrideKind.RESET_TIMER,
    "c": OverrideKind.CONTINUE,
    "s": OverrideKind.SELL_NOW,
}

MENU_TEXT = "R: Reset Timer | C: Continue | S: Sell 75%"


class OverrideChannel:
    """Single-consumer queue per override kind."""

    def __init__(self):
        self._queues: Dict[OverrideKind, asyncio.Queue] = {
            kind: asyncio.Queue() for kind in OverrideKind
        }

    def signal(self, kind: OverrideKind, source: str = "API"):
        """Record an override. Never blocks."""
        self._queues[kind].put_nowait(source)
        logger.info(f"OVERRIDE {kind.value} requested via {source}")

    def drain(self, kind: OverrideKind) -> bool:
        """Consume every pending signal of `kind`; True if there was any."""
        queue = self._queues[kind]
        pending = False
        while True:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                return pending
            pending = True

    def pending(self, kind: OverrideKind) -> int:
        return self._queues[kind].qsize()

    def clear(self):
        """Drop stale signals, e.g. before a new position starts."""
        for kind in OverrideKind:
            self.drain(kind)


class KeyboardOverrideSource:
    """
    Reads override keys from the terminal, one per line.

    Usage:
        source = KeyboardOverrideSource(channel)
        source.start(asyncio.get_running_loop())
    """

    def __init__(self, channel: OverrideChannel, readline: Optional[Callable[[], str]] = None):
        self.channel = channel
        self._readline = readline or sys.stdin.readline

    def handle_line(self, line: str) -> Optional[OverrideKind]:
        kind = KEY_BINDINGS.get(line.strip().lower())
        if kind is not None:
            self.channel.signal(kind, source="KEYBOARD")
        elif line.strip():
            logger.info(f"Unknown key {line.strip()!r} ({MENU_TEXT})")
        return kind

    def start(self, loop: asyncio.AbstractEventLoop) -> threading.Thread:
        """Read keys on a daemon thread; lines are handed to the loop thread-safely."""
        thread = threading.Thread(target=self._read_loop, args=(loop,), daemon=True, name="keyboard-overrides")
        thread.start()
        logger.info(f"Keyboard overrides enabled ({MENU_TEXT})")
        return thread

    def _read_loop(self, loop: asyncio.AbstractEventLoop):
        for line in iter(self._readline, ""):
            loop.call_soon_threadsafe(self.handle_line, line)
        logger.info("Keyboard input closed, keyboard overrides disabled")


def _read_commands(command_file: Path) -> list:
    if not command_file.exists():
        return []
    try:
        with open(command_file, 'r', encoding='utf-8') as f:
            commands = json.load(f)
    except json.JSONDecodeError:
        logger.warning(f"Command file {command_file} is not valid JSON, ignoring it")
        return []
    return commands if isinstance(commands, list) else []


def append_command(command_file: str, command_type: str) -> None:
    """Queue an override for the running bot. Used by the dashboard process."""
    kind = OverrideKind(command_type.upper())
    path = Path(command_file)
    with state_file_lock(str(path)):
        commands = _read_commands(path)
        commands.append({"type": kind.value, "processed": False, "ts": time.time()})
        atomic_write_json(str(path), commands)


class CommandFileSource:
    """
    Polls a dashboard command file for overrides.

    The file holds a JSON list of commands such as
    {"type": "SELL_NOW", "processed": false}. Unprocessed entries are
    marked processed and, once that is written back, signalled. The bot and
    the dashboard only touch the file while holding its lock.
    """

    def __init__(self, channel: OverrideChannel, command_file: str = "dashboard_commands.json",
                 poll_interval: float = 1.0):
        self.channel = channel
        self.command_file = Path(command_file)
        self.poll_interval = poll_interval

    def check_once(self) -> int:
        """Signal unprocessed commands; returns how many were signalled."""
        if not self.command_file.exists():
            return 0

        kinds = []
        with state_file_lock(str(self.command_file)):
            commands = _read_commands(self.command_file)
            updated = False
            for cmd_data in commands:
                if not isinstance(cmd_data, dict) or cmd_data.get('processed', False):
                    continue

                cmd_type = str(cmd_data.get('type', '')).upper()
                try:
                    kinds.append(OverrideKind(cmd_type))
                except ValueError:
                    logger.warning(f"Ignoring unknown dashboard command {cmd_type!r}")

                cmd_data['processed'] = True
                updated = True

            if updated:
                atomic_write_json(str(self.command_file), commands)

        for kind in kinds:
            self.channel.signal(kind, source="DASHBOARD")
        return len(kinds)

    async def run(self):
        while True:
            try:
                self.check_once()
            except (OSError, StateFileLockError) as e:
                logger.warning(f"Dashboard command check failed: {e}")
            await asyncio.sleep(self.poll_interval)
