# src/txt_reader/channels/inline_channel.py

from __future__ import annotations

import asyncio
import logging
import pickle
from typing import Any

from ..config import DEFAULT_CHUNK_SIZE
from ..core.ports import ResponseHandler, WireMessage
from ..engine.line_engine import LineEngine

logger = logging.getLogger(__name__)


def _copy_across(message: Any) -> Any:
    # Same serialisation a process pipe applies; nothing is shared by reference.
    return pickle.loads(pickle.dumps(message, protocol=pickle.HIGHEST_PROTOCOL))


class InlineChannel:
    """
    Engine running on the controller's own event loop.

    For tests, small files and environments where spawning a process is not
    possible. Requests run one loop turn after send() and responses arrive one
    loop turn each, so the asynchronous contract is the same as ProcessChannel's.
    The engine blocks the loop while it works.
    """

    def __init__(
            self,
            *,
            chunk_size: int = DEFAULT_CHUNK_SIZE,
            verbose: bool = False,
            loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.engine = LineEngine(chunk_size=chunk_size, verbose=verbose)
        self._loop = loop
        self._handler: ResponseHandler | None = None
        self._closed = False

    def set_response_handler(self, handler: ResponseHandler) -> None:
        self._handler = handler

    def send(self, message: WireMessage) -> None:
        if self._closed:
            raise RuntimeError("channel is closed")
        self._get_loop().call_soon(self._process, _copy_across(message))

    def close(self) -> None:
        self._closed = True

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _process(self, request: WireMessage) -> None:
        loop = self._get_loop()
        self.engine.handle(request, lambda response: loop.call_soon(self._deliver, _copy_across(response)))

    def _deliver(self, message: WireMessage) -> None:
        if self._closed:
            logger.debug("Channel closed, dropping engine response.")
            return
        assert self._handler is not None
        self._handler(message)
