"""Core types and leaf components for p4scm."""

from .errors import (
    CommandFailed,
    ConfigError,
    InvalidRecordShape,
    MalformedOutput,
    P4ScmError,
)
from .models import DEFAULT_CHANGELIST, Changelist, P4File, P4Info
from .state_store import RepositoryStateStore
from .tagged_output import NO_VALUE, decode, decode_stream

__version__ = "0.1.0"

__all__ = [
    "CommandFailed",
    "ConfigError",
    "InvalidRecordShape",
    "MalformedOutput",
    "P4ScmError",
    "DEFAULT_CHANGELIST",
    "Changelist",
    "P4File",
    "P4Info",
    "RepositoryStateStore",
    "NO_VALUE",
    "decode",
    "decode_stream",
]
