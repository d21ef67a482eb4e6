"""Error types that carry a message together with the error that caused it."""

from __future__ import annotations

from typing import Any


class BoshError(Exception):
    """Base class for errors raised by this package."""


class ComplexError(BoshError):
    """An error wrapping a cause; renders as ``"<err>: <cause>"``."""

    def __init__(self, err: BaseException, cause: BaseException) -> None:
        super().__init__(f"{err}: {cause}")
        self.err = err
        self.cause = cause

    def short_error(self) -> str:
        """Render the error using the short form of each part where available."""
        return f"{short_message(self.err)}: {short_message(self.cause)}"


class UserError(BoshError):
    """An error meant to be shown to the user as is."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.err = BoshError(message)


class MultiError(BoshError):
    """Several errors reported together, one per line."""

    def __init__(self, *errors: BaseException) -> None:
        self.errors = list(errors)
        super().__init__("\n".join(str(error) for error in self.errors))


def short_message(err: BaseException) -> str:
    """Return the short form of an error if it offers one, else its message."""
    shorten = getattr(err, "short_error", None)
    if callable(shorten):
        return shorten()
    return str(err)


def wrap_error(cause: BaseException | None, message: str, *args: Any) -> ComplexError:
    """Wrap ``cause`` in a new error whose message is ``message % args``."""
    text = message % args if args else message
    return wrap_complex_error(cause, BoshError(text))


def wrap_complex_error(cause: BaseException | None, err: BaseException) -> ComplexError:
    """Combine an error and its cause into a :class:`ComplexError`."""
    if cause is None:
        cause = BoshError("<nil cause>")
    return ComplexError(err, cause)