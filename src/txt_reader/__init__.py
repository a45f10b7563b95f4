"""
txt_reader: read very large text files from an asyncio program.

The file work happens in an isolated engine process; the controller side only
schedules tasks and streams their progress and results back.
"""

from .closures.marshaller import IteratorConfig
from .core.reader import NOT_LOADED_MESSAGE, TxtReader
from .errors import MarshalError, ProtocolError, TaskFailedError, TxtReaderError
from .tasks.task_future import TxtReaderTask
from .tasks.task_models import TaskResponse, TaskState

__all__ = [
    "IteratorConfig",
    "MarshalError",
    "NOT_LOADED_MESSAGE",
    "ProtocolError",
    "TaskFailedError",
    "TaskResponse",
    "TaskState",
    "TxtReader",
    "TxtReaderError",
    "TxtReaderTask",
]
