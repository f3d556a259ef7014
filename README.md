# nachoskern

The user-program side of a small teaching operating-system kernel, in pure
Python with no runtime dependencies (Python 3.10 or later). It gives a
simulated kernel what it needs to hand out page frames, load a NOFF
executable into memory and answer a user program's system calls.

## Modules

### `nachoskern.bitmap`

`BitMap(nitems)` is a fixed-size array of bits, all clear at the start
(a negative size raises `ValueError`).

- `mark(n)`, `clear(n)`, `test(n)` set, clear and test bit `n`; a bit
  outside the map raises `IndexError`.
- `find()` marks the lowest clear bit and returns its number, or `None`
  when every bit is set.
- `num_clear()` counts the clear bits; `set_bits()` lists the set ones.
- `print(file=None)` writes `Bitmap set:` followed by the set bit numbers
  to `file` or standard output.
- `write_back(file)` and `fetch_from(file)` store and load the bits at the
  start of an open binary file, as little-endian 32-bit words.
- `len(bitmap)` is the number of bits.

### `nachoskern.syscalls`

`SyscallCode` is an `IntEnum` of the codes a user program puts in
register 2: `HALT` 0, `EXIT` 1, `EXEC` 2, `JOIN` 3, `CREATE` 4, `OPEN` 5,
`READ` 6, `WRITE` 7, `CLOSE` 8, `FORK` 9, `YIELD` 10, `PRINT_STRING` 42,
`SEEK` 43, `DELETE` 44. `SyscallCode.from_register(value)` returns the code
or raises `ValueError`. `CONSOLE_INPUT` (0) and `CONSOLE_OUTPUT` (1) are the
console's file ids.

### `nachoskern.addrspace`

- `NoffHeader.parse(data, magic=NOFF_MAGIC)` decodes the 40-byte header of
  a NOFF executable in either byte order into `code`, `init_data` and
  `uninit_data` `Segment`s (`virtual_addr`, `in_file_addr`, `size`). Short
  data, a wrong magic number or a negative segment size raise
  `InvalidExecutableError`.
- `AddressSpace(executable, memory, frames, page_size=128, magic=NOFF_MAGIC,
  stack_size=1024)` reads the header from a binary file, sizes the space as
  the three segments plus the stack rounded up to whole pages, takes one
  frame per page from the `frames` bitmap, zeroes those frames in the
  `memory` bytearray and copies in the code and initialised data through
  its page table of `TranslationEntry` records. Too few free frames raises
  `OutOfMemoryError`. Each space gets a `space_id` in 0–999 and exposes
  `page_table`, `num_pages`, `size` and `header`.
- `init_registers(machine)` zeroes the registers, sets the PC to 0, the
  next PC to 4 and the stack register to `size - 16`;
  `restore_state(machine)` installs the page table on the machine;
  `save_state(machine)` does nothing.
- `release()` returns the frames to the bitmap (calling it twice is
  harmless); the space is also a context manager that releases on exit.

### `nachoskern.kernel`

`Kernel(machine, file_system, console, space_factory)` is the entry point
from user code. `handle_exception(which)` takes an `ExceptionType`; for a
system call it reads the code from register 2 and the arguments from
registers 4–6, performs the call, writes the result to register 2 and
advances the program counter with `advance_pc()`.

- `Halt`, `Exit` from the main program, an unknown or unhandled system
  call (`Join`, `Fork`, `Yield` included) and any other exception type
  raise `MachineHalted` (with `reason` and, for `Exit`, `exit_code`).
  `NO_EXCEPTION` returns at once.
- `Exit` from another process releases its space, records
  `(name, exit_code)` in `kernel.finished` and clears `kernel.current`.
- `Exec` opens the named program, builds its space with `space_factory`,
  appends it with its priority to `kernel.ready` and returns its
  `space_id`, or -1 if the file cannot be opened.
- `Create` and `Delete` return 0 on success and -1 on failure; `Open`,
  `Close` and `Seek` return what the file system returns; `Read` and
  `Write` return the byte count, or -2 when fewer bytes than asked for
  were transferred. `PrintString` writes a NUL-terminated string to the
  console.

`user_to_system(addr, limit)` and `system_to_user(addr, data)` copy bytes
across the user/kernel boundary. `start_process(filename)` loads a program
as the main process, sets up its registers and page table and calls
`machine.run()`; a missing file raises `FileNotFoundError`.
`console_echo(console)` echoes characters from `console.get_char()` to
`console.put_char()` until a `q` or the end of input, and returns what it
echoed.

The collaborators are supplied by the caller:

- machine: `read_register`, `write_register`, `read_mem(addr, size)`,
  `write_mem(addr, size, value)`, `run()`, and `page_table` /
  `page_table_size` attributes;
- file system: `f_open(name, mode)`, `f_close(id)`,
  `f_read(size, id) -> bytes`, `f_write(data, id) -> int`,
  `f_seek(pos, id)`, `f_delete(name)`, `create(name, size) -> bool`,
  `open(name)` returning a binary file or `None`;
- console: `write(text)`;
- `space_factory(executable)`: returns an object with `space_id`,
  `init_registers`, `restore_state` and optionally `release` — for
  example a closure over `AddressSpace`.

## Example

```python
from nachoskern.bitmap import BitMap

frames = BitMap(8)
first = frames.find()      # 0, now marked as in use
second = frames.find()     # 1
frames.clear(first)
assert frames.test(second)
assert frames.num_clear() == 7
```

## What this package does not do

It has no instruction-set simulator, file system, console device or
thread scheduler of its own, and no command-line program. The kernel only
works against the machine, file system and console objects it is given;
processes started by `Exec` are queued in `kernel.ready` but nothing here
runs them.