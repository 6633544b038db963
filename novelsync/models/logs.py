from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class LogLevel(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogEntry(BaseModel):
    seq: int
    id: str
    timestamp: datetime
    level: LogLevel
    message: str
