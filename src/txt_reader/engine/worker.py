# src/txt_reader/engine/worker.py

"""Entry point of the engine process."""

from __future__ import annotations

import logging
from multiprocessing.connection import Connection

from ..config import DEFAULT_CHUNK_SIZE
from ..logging_setup import setup_worker_logging
from .line_engine import LineEngine

logger = logging.getLogger(__name__)

STOP = None


def serve(conn: Connection, *, chunk_size: int = DEFAULT_CHUNK_SIZE, verbose: bool = False) -> None:
    """
    Handle requests one at a time until STOP arrives or the controller goes away.

    Responses are written to the same connection, in the order they are produced.
    """
    setup_worker_logging(verbose=verbose)
    engine = LineEngine(chunk_size=chunk_size, verbose=verbose)
    logger.debug("Engine process ready (chunk_size=%s).", chunk_size)

    try:
        while True:
            try:
                request = conn.recv()
            except (EOFError, OSError):
                logger.debug("Controller connection closed.")
                return
            if request is STOP:
                logger.debug("Engine received stop signal.")
                return
            engine.handle(request, conn.send)
    finally:
        conn.close()
