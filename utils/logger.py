"""
Logging through Rich
Chunk retries show up as warnings, exhausted fallbacks as errors,
per-field decode problems only with --verbose.
"""
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from config.settings import LOG_LEVEL

console = Console(stderr=True)

# Libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ("web3", "urllib3", "asyncio", "aiohttp")


def setup_logging(verbose: bool = False, level: Optional[str] = None):
    """Install a RichHandler on the root logger, DEBUG when verbose"""
    name = "DEBUG" if verbose else (level or LOG_LEVEL)
    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=False,
        markup=True
    )
    logging.basicConfig(
        level=getattr(logging, name.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True
    )

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
