# src/txt_reader/core/ports.py

"""
Ports (interfaces) used by the core.

The scheduler depends on a Protocol instead of a concrete peer.
This keeps the engine transport swappable (process, in-process) and makes testing easier.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

WireMessage = dict[str, Any]
# Plain-data message: {"action": ..., "data": ..., "taskId": ...} or a response dict.

ResponseHandler = Callable[[WireMessage], None]


class PeerChannel(Protocol):
    """
    The single isolated execution context the scheduler talks to.

    Contract:
    - send() never blocks on the engine doing the work; it only hands the message over.
    - the response handler is invoked on the controller's event loop thread, one
      response at a time, in the order the engine emitted them.
    - exceptions raised by the handler must not be caught by the channel.
    """

    def set_response_handler(self, handler: ResponseHandler) -> None: ...

    def send(self, message: WireMessage) -> None: ...

    def close(self) -> None: ...
