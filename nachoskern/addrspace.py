"""Address spaces for user programs loaded from NOFF executables."""

from __future__ import annotations

import random
import struct
from dataclasses import dataclass
from typing import BinaryIO, Protocol

from nachoskern.bitmap import BitMap

NOFF_MAGIC = 0xBADFAD
PAGE_SIZE = 128
NUM_PHYS_PAGES = 32
USER_STACK_SIZE = 1024

NUM_TOTAL_REGS = 40
STACK_REG = 29
PC_REG = 34
NEXT_PC_REG = 35
PREV_PC_REG = 36

_HEADER_FIELDS = 10
_HEADER_SIZE = _HEADER_FIELDS * 4


class InvalidExecutableError(ValueError):
    """The executable is not a loadable NOFF image."""


class OutOfMemoryError(RuntimeError):
    """Not enough free physical pages to hold the address space."""


class Machine(Protocol):
    """The part of the simulated machine an address space talks to."""

    page_table: list[TranslationEntry] | None
    page_table_size: int

    def write_register(self, num: int, value: int) -> None: ...


@dataclass(frozen=True)
class Segment:
    """One segment of a NOFF executable."""

    virtual_addr: int
    in_file_addr: int
    size: int


@dataclass(frozen=True)
class NoffHeader:
    """The header at the start of a NOFF executable."""

    magic: int
    code: Segment
    init_data: Segment
    uninit_data: Segment

    @classmethod
    def parse(cls, data: bytes, magic: int = NOFF_MAGIC) -> NoffHeader:
        """Decode a header, accepting either byte order.

        Raises ``InvalidExecutableError`` when the data is too short or
        the magic number does not match in either byte order.
        """
        if len(data) < _HEADER_SIZE:
            raise InvalidExecutableError(
                f"NOFF header needs {_HEADER_SIZE} bytes, got {len(data)}"
            )
        raw = bytes(data[:_HEADER_SIZE])
        for order in ("<", ">"):
            words = struct.unpack(f"{order}{_HEADER_FIELDS}i", raw)
            if words[0] & 0xFFFFFFFF == magic:
                break
        else:
            raise InvalidExecutableError("bad NOFF magic number")
        code, init_data, uninit_data = (
            Segment(*words[start : start + 3]) for start in (1, 4, 7)
        )
        for name, segment in (
            ("code", code),
            ("initialised data", init_data),
            ("uninitialised data", uninit_data),
        ):
            if segment.size < 0:
                raise InvalidExecutableError(f"negative {name} segment size")
        return cls(magic, code, init_data, uninit_data)


@dataclass
class TranslationEntry:
    """A page table entry mapping one virtual page to a physical frame."""

    virtual_page: int
    physical_page: int
    valid: bool = True
    use: bool = False
    dirty: bool = False
    read_only: bool = False


class AddressSpace:
    """The memory of one user program, backed by frames of main memory."""

    def __init__(
        self,
        executable: BinaryIO,
        memory: bytearray,
        frames: BitMap,
        page_size: int = PAGE_SIZE,
        magic: int = NOFF_MAGIC,
        stack_size: int = USER_STACK_SIZE,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page size must be positive")
        if len(memory) < len(frames) * page_size:
            raise ValueError("main memory is smaller than the frames it is said to hold")

        executable.seek(0)
        header = NoffHeader.parse(executable.read(_HEADER_SIZE), magic)

        total = (
            header.code.size
            + header.init_data.size
            + header.uninit_data.size
            + stack_size
        )
        num_pages = -(-total // page_size)
        if num_pages > frames.num_clear():
            raise OutOfMemoryError(
                f"program needs {num_pages} pages, "
                f"only {frames.num_clear()} are free"
            )

        self._memory = memory
        self._frames = frames
        self._page_size = page_size
        self._released = False
        self.header = header
        self.page_table: list[TranslationEntry] = []

        for virtual_page in range(num_pages):
            physical_page = frames.find()
            if physical_page is None:  # pragma: no cover - guarded above
                self.release()
                raise OutOfMemoryError("ran out of physical pages")
            self.page_table.append(TranslationEntry(virtual_page, physical_page))
            start = physical_page * page_size
            memory[start : start + page_size] = bytes(page_size)

        try:
            self._load(executable, header.code)
            self._load(executable, header.init_data)
        except Exception:
            self.release()
            raise

        self.space_id = random.randrange(1000)

    @property
    def num_pages(self) -> int:
        """Number of pages in the virtual address space."""
        return len(self.page_table)

    @property
    def size(self) -> int:
        """Size of the virtual address space in bytes."""
        return self.num_pages * self._page_size

    def _physical_address(self, virt_addr: int) -> int:
        page, offset = divmod(virt_addr, self._page_size)
        if not 0 <= page < len(self.page_table):
            raise InvalidExecutableError(
                f"virtual address {virt_addr} lies outside the address space"
            )
        return self.page_table[page].physical_page * self._page_size + offset

    def _load(self, executable: BinaryIO, segment: Segment) -> None:
        if segment.size <= 0:
            return
        executable.seek(segment.in_file_addr)
        data = executable.read(segment.size)
        pos = 0
        while pos < len(data):
            virt = segment.virtual_addr + pos
            offset = virt % self._page_size
            count = min(self._page_size - offset, len(data) - pos)
            phys = self._physical_address(virt)
            self._memory[phys : phys + count] = data[pos : pos + count]
            pos += count

    def init_registers(self, machine: Machine) -> None:
        """Zero the registers and point PC and stack at the program start."""
        for reg in range(NUM_TOTAL_REGS):
            machine.write_register(reg, 0)
        machine.write_register(PC_REG, 0)
        machine.write_register(NEXT_PC_REG, 4)
        machine.write_register(STACK_REG, self.size - 16)

    def save_state(self, machine: Machine) -> None:
        """Save address-space state on a context switch; nothing is needed."""

    def restore_state(self, machine: Machine) -> None:
        """Install this space's page table in the machine."""
        machine.page_table = self.page_table
        machine.page_table_size = self.num_pages

    def release(self) -> None:
        """Return every physical page to the free pool. Safe to call twice."""
        if self._released:
            return
        self._released = True
        for entry in self.page_table:
            self._frames.clear(entry.physical_page)

    def __enter__(self) -> AddressSpace:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()