from __future__ import annotations

import logging
from pathlib import Path

from pump_sniper.config import Settings

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_FILE_NAME = "bot.log"

GREY = "\x1b[90m"
GREEN = "\x1b[92m"
CYAN = "\x1b[96m"
RED = "\x1b[91m"
MAGENTA = "\x1b[95m"
YELLOW = "\x1b[93m"
RESET = "\x1b[0m"


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors trade events so they stand out from tick noise."""

    MAGENTA = MAGENTA
    DATE_FMT = "%H:%M:%S"

    # First match wins
    KEYWORD_COLORS = (
        (("BUY", "ENTRY"), GREEN),
        (("NEW TOKEN",), CYAN),
        (("SELL", "SOLD", "EXIT", "OVERRIDE"), MAGENTA),
        (("REJECT", "SKIP"), GREY),
    )

    def __init__(self) -> None:
        super().__init__(datefmt=self.DATE_FMT)

    def _color_for(self, record: logging.LogRecord) -> str:
        msg = str(record.msg)
        for keywords, color in self.KEYWORD_COLORS:
            if any(keyword in msg for keyword in keywords):
                return color
        if record.levelno >= logging.ERROR:
            return RED
        if record.levelno >= logging.WARNING:
            return YELLOW
        return GREY

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.DATE_FMT)
        line = f"{record.asctime} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return f"{self._color_for(record)}{line}{RESET}"


def setup_logging(settings: Settings) -> Path:
    """Log to the console (colored) and to LOG_DIR/bot.log, which the dashboard tails."""
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ColoredFormatter())

    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL)

    # Remove existing handlers to avoid duplicates on reload
    if root.hasHandlers():
        root.handlers.clear()

    root.addHandler(file_handler)
    root.addHandler(console_handler)

    for noisy in ("httpx", "httpcore", "asyncio", "websockets", "solana"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_path
