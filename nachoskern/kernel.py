"""Kernel entry point for user programs: system calls and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, BinaryIO, Callable, Protocol

from nachoskern.addrspace import NEXT_PC_REG, PC_REG, PREV_PC_REG
from nachoskern.syscalls import SyscallCode

MAX_STRING_SIZE = 1023

RESULT_REG = 2
ARG1_REG = 4
ARG2_REG = 5
ARG3_REG = 6

SHORT_TRANSFER = -2


class ExceptionType(IntEnum):
    """Reasons for control to pass from user code into the kernel."""

    NO_EXCEPTION = 0
    SYSCALL = 1
    PAGE_FAULT = 2
    READ_ONLY = 3
    BUS_ERROR = 4
    ADDRESS_ERROR = 5
    OVERFLOW = 6
    ILLEGAL_INSTRUCTION = 7


class MachineHalted(Exception):
    """The simulated machine has been shut down."""

    def __init__(self, reason: str = "halt", exit_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.exit_code = exit_code


class Machine(Protocol):
    page_table: Any
    page_table_size: int

    def read_register(self, num: int) -> int: ...

    def write_register(self, num: int, value: int) -> None: ...

    def read_mem(self, addr: int, size: int) -> int: ...

    def write_mem(self, addr: int, size: int, value: int) -> None: ...

    def run(self) -> None: ...


class FileSystem(Protocol):
    def f_open(self, name: str, mode: int) -> int: ...

    def f_close(self, file_id: int) -> int: ...

    def f_read(self, size: int, file_id: int) -> bytes: ...

    def f_write(self, data: bytes, file_id: int) -> int: ...

    def f_seek(self, pos: int, file_id: int) -> int: ...

    def f_delete(self, name: str) -> int: ...

    def create(self, name: str, initial_size: int) -> bool: ...

    def open(self, name: str) -> BinaryIO | None: ...


class Console(Protocol):
    def write(self, text: str) -> None: ...


@dataclass
class _Process:
    name: str
    space: Any
    priority: int = 0


class Kernel:
    """Dispatches user-mode exceptions and system calls."""

    def __init__(
        self,
        machine: Machine,
        file_system: FileSystem,
        console: Console,
        space_factory: Callable[[BinaryIO], Any],
    ) -> None:
        self.machine = machine
        self.file_system = file_system
        self.console = console
        self.space_factory = space_factory
        self.current: _Process | None = None
        self.ready: list[_Process] = []
        self.finished: list[tuple[str, int]] = []
        self._handlers: dict[SyscallCode, Callable[[], None]] = {
            SyscallCode.HALT: self._halt,
            SyscallCode.EXIT: self._exit,
            SyscallCode.EXEC: self._exec,
            SyscallCode.CREATE: self._create,
            SyscallCode.OPEN: self._open,
            SyscallCode.CLOSE: self._close,
            SyscallCode.READ: self._read,
            SyscallCode.WRITE: self._write,
            SyscallCode.SEEK: self._seek,
            SyscallCode.DELETE: self._delete,
            SyscallCode.PRINT_STRING: self._print_string,
        }

    # -- memory transfer -------------------------------------------------

    def user_to_system(self, virt_addr: int, limit: int) -> bytes:
        """Copy ``limit`` bytes from user memory into a kernel buffer."""
        return bytes(
            self.machine.read_mem(virt_addr + i, 1) & 0xFF for i in range(max(limit, 0))
        )

    def system_to_user(self, virt_addr: int, data: bytes) -> int:
        """Copy ``data`` into user memory and return the number of bytes copied."""
        for i, byte in enumerate(data):
            self.machine.write_mem(virt_addr + i, 1, byte)
        return len(data)

    def _read_string(self, virt_addr: int) -> str:
        chars = bytearray()
        for i in range(MAX_STRING_SIZE + 1):
            byte = self.machine.read_mem(virt_addr + i, 1) & 0xFF
            if byte == 0:
                break
            chars.append(byte)
        return chars.decode("utf-8", errors="replace")

    # -- control flow ----------------------------------------------------

    def advance_pc(self) -> None:
        """Move the program counters past the current instruction."""
        pc = self.machine.read_register(PC_REG)
        self.machine.write_register(PREV_PC_REG, pc)
        next_pc = self.machine.read_register(NEXT_PC_REG)
        self.machine.write_register(PC_REG, next_pc)
        self.machine.write_register(NEXT_PC_REG, next_pc + 4)

    def handle_exception(self, which: ExceptionType | int) -> None:
        """Handle an exception raised by user code.

        Raises ``MachineHalted`` when the machine shuts down.
        """
        code = self.machine.read_register(RESULT_REG)
        try:
            kind = ExceptionType(int(which))
        except ValueError:
            raise MachineHalted(f"unexpected user mode exception ({which} {code})") from None
        if kind is ExceptionType.NO_EXCEPTION:
            return
        if kind is not ExceptionType.SYSCALL:
            raise MachineHalted(f"unexpected user mode exception ({int(kind)} {code})")
        try:
            syscall = SyscallCode.from_register(code)
        except ValueError:
            raise MachineHalted(f"unexpected syscall ({int(kind)} {code})") from None
        handler = self._handlers.get(syscall)
        if handler is None:
            raise MachineHalted(f"unexpected syscall ({int(kind)} {code})")
        process = self.current
        handler()
        if syscall is SyscallCode.EXIT and process is not None and self.current is None:
            return
        self.advance_pc()

    def start_process(self, filename: str) -> None:
        """Load an executable as the main program and run it."""
        executable = self.file_system.open(filename)
        if executable is None:
            raise FileNotFoundError(f"Unable to open file {filename}")
        try:
            space = self.space_factory(executable)
        finally:
            executable.close()
        self.current = _Process("main", space)
        space.init_registers(self.machine)
        space.restore_state(self.machine)
        self.machine.run()

    # -- system calls ----------------------------------------------------

    def _result(self, value: int) -> None:
        self.machine.write_register(RESULT_REG, value)

    def _halt(self) -> None:
        raise MachineHalted("shutdown, initiated by user program")

    def _exit(self) -> None:
        exit_code = self.machine.read_register(ARG1_REG)
        process = self.current
        if process is None or process.name == "main":
            raise MachineHalted("exit", exit_code)
        release = getattr(process.space, "release", None)
        if release is not None:
            release()
        self.finished.append((process.name, exit_code))
        self.current = None

    def _exec(self) -> None:
        name = self._read_string(self.machine.read_register(ARG1_REG))
        executable = self.file_system.open(name)
        if executable is None:
            self._result(-1)
            return
        try:
            space = self.space_factory(executable)
        finally:
            executable.close()
        priority = self.machine.read_register(ARG2_REG)
        self.ready.append(_Process(name, space, priority))
        self._result(space.space_id)

    def _create(self) -> None:
        name = self._read_string(self.machine.read_register(ARG1_REG))
        self._result(0 if self.file_system.create(name, 0) else -1)

    def _open(self) -> None:
        name = self._read_string(self.machine.read_register(ARG1_REG))
        mode = self.machine.read_register(ARG2_REG)
        self._result(self.file_system.f_open(name, mode))

    def _close(self) -> None:
        self._result(self.file_system.f_close(self.machine.read_register(ARG1_REG)))

    def _read(self) -> None:
        virt_addr = self.machine.read_register(ARG1_REG)
        size = self.machine.read_register(ARG2_REG)
        file_id = self.machine.read_register(ARG3_REG)
        data = bytes(self.file_system.f_read(size, file_id) or b"")
        count = len(data)
        if count < size:
            count = SHORT_TRANSFER
        if size > 0:
            buffer = data[:size].ljust(size, b"\0")
            self.system_to_user(virt_addr, buffer)
        self._result(count)

    def _write(self) -> None:
        virt_addr = self.machine.read_register(ARG1_REG)
        size = self.machine.read_register(ARG2_REG)
        file_id = self.machine.read_register(ARG3_REG)
        buffer = self.user_to_system(virt_addr, size)
        count = self.file_system.f_write(buffer, file_id)
        if count < size:
            count = SHORT_TRANSFER
        self._result(count)

    def _seek(self) -> None:
        pos = self.machine.read_register(ARG1_REG)
        file_id = self.machine.read_register(ARG2_REG)
        self._result(self.file_system.f_seek(pos, file_id))

    def _delete(self) -> None:
        name = self._read_string(self.machine.read_register(ARG1_REG))
        self._result(-1 if self.file_system.f_delete(name) else 0)

    def _print_string(self) -> None:
        text = self._read_string(self.machine.read_register(ARG1_REG))
        self.console.write(text)


def console_echo(console: Any) -> str:
    """Echo characters from ``console`` back to it until a 'q' is typed.

    Returns everything echoed, including the final 'q'. Stops early if the
    input runs out.
    """
    echoed = []
    while True:
        ch = console.get_char()
        if not ch:
            break
        console.put_char(ch)
        echoed.append(ch)
        if ch == "q":
            break
    return "".join(echoed)