"""Persistence — per-event occurrence logs and the alert state file."""

from src.persistence.layer import PersistenceLayer, RecoveryResult, parse_log
from src.persistence.log_stream import LogStream
from src.persistence.state_file import STATE_FILENAME, StateFile, StateSnapshot

__all__ = [
    "STATE_FILENAME",
    "LogStream",
    "PersistenceLayer",
    "RecoveryResult",
    "StateFile",
    "StateSnapshot",
    "parse_log",
]
