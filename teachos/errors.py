"""Errors raised when kernel invariants are violated."""


class KernelPanic(Exception):
    """An unrecoverable kernel error; the kernel would halt here."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message