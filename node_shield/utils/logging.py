"""Logging utilities for NodeShield."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


# Level applied to loggers created after setup_logging, and the names seen so far
_state: Dict[str, Any] = {"level": logging.INFO, "names": set()}


class NodeShieldLogger:
    """Logger wrapper with rich formatting on stderr."""

    def __init__(self, name: str, level: Optional[int] = None) -> None:
        self.logger = logging.getLogger(name)
        if self.logger.level == logging.NOTSET:
            self.logger.setLevel(_state["level"] if level is None else level)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Setup rich console handler with custom theme."""
        # stderr keeps JSON/CSV output on stdout clean
        console = Console(stderr=True, theme=Theme({
            "info": "cyan",
            "warning": "yellow",
            "error": "red",
            "critical": "red bold",
            "debug": "dim",
        }))

        handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
        )

        formatter = logging.Formatter(
            fmt="%(name)s: %(message)s",
            datefmt="[%X]"
        )
        handler.setFormatter(formatter)

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)


def setup_logging(
    verbose: bool = False,
    log_file: Optional[Path] = None,
    level: int = logging.WARNING
) -> None:
    """Setup logging configuration for NodeShield.

    Args:
        verbose: Enable debug logging for all NodeShield loggers
        log_file: Optional log file path
        level: Level used when not verbose
    """
    if verbose:
        level = logging.DEBUG

    handlers = [logging.FileHandler(log_file)] if log_file else []
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers or None,
    )

    _state["level"] = level
    for name in _state["names"]:
        logging.getLogger(name).setLevel(level)

    # Set specific logger levels
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> NodeShieldLogger:
    """Get a NodeShield logger instance.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    _state["names"].add(name)
    return NodeShieldLogger(name)
