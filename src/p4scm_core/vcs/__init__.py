from .base import CommandExecutor, CommandResult
from .p4_executor import P4CommandExecutor

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "P4CommandExecutor",
]
