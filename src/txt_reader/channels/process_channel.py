# src/txt_reader/channels/process_channel.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import multiprocessing
import threading

from ..config import DEFAULT_CHUNK_SIZE
from ..core.ports import ResponseHandler, WireMessage
from ..engine.worker import STOP, serve

logger = logging.getLogger(__name__)


class ProcessChannel:
    """
    Engine in a separate process, connected by a duplex pipe.

    Reader thread:
    - Connection.recv() blocks; the event loop must not.
    - Every response is handed to the loop with call_soon_threadsafe, so the
      scheduler still handles responses one at a time on the loop thread.

    The loop is resolved before the engine process starts: an explicit loop, or
    the running one. Without either the constructor raises and nothing is spawned.
    """

    def __init__(
            self,
            *,
            chunk_size: int = DEFAULT_CHUNK_SIZE,
            verbose: bool = False,
            start_method: str = "spawn",
            shutdown_timeout: float = 5.0,
            loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()
        self._handler: ResponseHandler | None = None
        self._shutdown_timeout = shutdown_timeout
        self._closed = False
        self._reader: threading.Thread | None = None

        ctx = multiprocessing.get_context(start_method)
        self._conn, child_conn = ctx.Pipe(duplex=True)
        self._process = ctx.Process(
            target=serve,
            args=(child_conn,),
            kwargs={"chunk_size": chunk_size, "verbose": verbose},
            name="txt-reader-engine",
            daemon=True,
        )
        self._process.start()
        child_conn.close()
        logger.info("Engine process started (pid=%s, start_method=%s).", self._process.pid, start_method)

    def set_response_handler(self, handler: ResponseHandler) -> None:
        if self._reader is not None:
            raise RuntimeError("response handler is already set")
        self._handler = handler
        self._reader = threading.Thread(target=self._read_loop, name="txt-reader-responses", daemon=True)
        self._reader.start()

    def send(self, message: WireMessage) -> None:
        if self._closed:
            raise RuntimeError("channel is closed")
        self._conn.send(message)

    def _read_loop(self) -> None:
        while True:
            try:
                message = self._conn.recv()
            except (EOFError, OSError):
                if not self._closed:
                    logger.error("Engine process went away (exitcode=%s).", self._process.exitcode)
                return
            try:
                self._loop.call_soon_threadsafe(self._deliver, message)
            except RuntimeError:
                # Loop closed under us; nobody is left to receive responses.
                logger.debug("Event loop closed, dropping engine response.", exc_info=True)
                return

    def _deliver(self, message: WireMessage) -> None:
        assert self._handler is not None
        self._handler(message)

    def close(self) -> None:
        """Stop the engine: polite STOP first, terminate after the timeout."""
        if self._closed:
            return
        self._closed = True

        with contextlib.suppress(OSError, ValueError):
            self._conn.send(STOP)

        self._process.join(timeout=self._shutdown_timeout)
        if self._process.is_alive():
            logger.warning("Engine process did not stop in %.1fs, terminating.", self._shutdown_timeout)
            self._process.terminate()
            self._process.join(timeout=self._shutdown_timeout)

        with contextlib.suppress(OSError):
            self._conn.close()
        if self._reader is not None:
            self._reader.join(timeout=self._shutdown_timeout)
        logger.info("Engine process stopped.")
