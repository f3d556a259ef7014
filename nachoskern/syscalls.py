"""System call numbers and the fixed descriptors of the console."""

from __future__ import annotations

from enum import IntEnum

CONSOLE_INPUT = 0
CONSOLE_OUTPUT = 1


class SyscallCode(IntEnum):
    """Codes placed in register 2 to select a system call."""

    HALT = 0
    EXIT = 1
    EXEC = 2
    JOIN = 3
    CREATE = 4
    OPEN = 5
    READ = 6
    WRITE = 7
    CLOSE = 8
    FORK = 9
    YIELD = 10
    PRINT_STRING = 42
    SEEK = 43
    DELETE = 44

    @classmethod
    def from_register(cls, value: int) -> SyscallCode:
        """Return the system call selected by a register value.

        Raises ``ValueError`` when the value names no known system call.
        """
        try:
            return cls(int(value))
        except ValueError:
            raise ValueError(f"unknown system call code {value}") from None