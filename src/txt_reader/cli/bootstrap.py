# src/txt_reader/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- configures logging from them,
- wires a concrete channel (engine process or inline engine) into a TxtReader.
"""

from __future__ import annotations

import logging

from ..channels.inline_channel import InlineChannel
from ..config import Settings, get_settings
from ..core.ports import PeerChannel
from ..core.reader import TxtReader
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir if settings.log_to_file else None, console_level=console_level)


def create_reader(*, settings: Settings | None = None, inline: bool = False) -> TxtReader:
    """
    Build a TxtReader; must be called with the event loop running.

    settings defaults to get_settings().
    """
    if settings is None:
        settings = get_settings()

    channel: PeerChannel | None = None
    if inline:
        channel = InlineChannel(chunk_size=settings.chunk_size, verbose=settings.verbose)

    reader = TxtReader(channel, settings=settings)
    logger.debug("Reader created (engine=%s).", "inline" if inline else "process")
    return reader
