"""Platform helpers: subprocess execution and filesystem primitives."""

from fk.platform.files import LockHeld, atomic_write_text, exclusive_lock, sha256_file
from fk.platform.process import ProcessError, run

__all__ = [
    "LockHeld",
    "ProcessError",
    "atomic_write_text",
    "exclusive_lock",
    "run",
    "sha256_file",
]
