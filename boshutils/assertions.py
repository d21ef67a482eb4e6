"""Test assertions for JSON output and file paths."""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass
from typing import Any

_WINDOWS = os.name == "nt"


def _default(obj: Any) -> Any:
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return json.loads(to_json())
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _marshal(obj: Any) -> str:
    return json.dumps(
        obj,
        default=_default,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def matches_json(obj: Any, expected: Any) -> None:
    """Assert that ``obj`` serialises to exactly the expected JSON.

    ``expected`` may be JSON text (``str`` or ``bytes``) or a value that is
    serialised the same way as ``obj``.
    """
    if isinstance(expected, bytes):
        expected_text = expected.decode("utf-8")
    elif isinstance(expected, str):
        expected_text = expected
    else:
        expected_text = _marshal(expected)

    actual_text = _marshal(obj)
    if actual_text != expected_text:
        raise AssertionError(f"Expected JSON\n\t{expected_text}\nbut got\n\t{actual_text}")


def lacks_json_key(obj: Any, key: str) -> None:
    """Assert that the JSON object ``obj`` serialises to has no ``key``."""
    as_map = json.loads(_marshal(obj))
    if key in as_map:
        keys = ", ".join(as_map)
        raise AssertionError(f'Expected object with keys "{keys}" to not have key "{key}"')


def _is_abs(path: str) -> bool:
    return os.path.isabs(path) or (_WINDOWS and path[:1] in ("\\", "/"))


@dataclass(frozen=True)
class MatchPath:
    """Matches file paths, tolerating unclean forms of the same path.

    On Windows, paths with a leading slash are made absolute using the
    current drive before comparison.
    """

    path: str

    def __str__(self) -> str:
        return self.path

    def _clean(self, path: str) -> str:
        if not _WINDOWS or not _is_abs(path):
            return path
        try:
            return os.path.abspath(path)
        except (OSError, ValueError):
            return path

    def match(self, actual: Any) -> bool:
        """Tell whether ``actual`` names the same path."""
        if not isinstance(actual, str):
            raise TypeError(f"MatchPath: expects a string got: {type(actual).__name__}")
        if actual == self.path or os.path.normpath(actual) == os.path.normpath(self.path):
            return True
        return self._clean(actual) == self._clean(self.path)

    def _describe(self, actual: Any, verb: str) -> str:
        if _WINDOWS and isinstance(actual, str):
            return (
                f"Expected\n\t{actual}\n\t{self._clean(actual)} (clean)\n"
                f"{verb} file\n\t{self.path}\n\t{self._clean(self.path)} (clean)"
            )
        return f"Expected\n\t{actual}\n{verb} file\n\t{self.path}"

    def failure_message(self, actual: Any) -> str:
        """Message for a path that was expected to match but did not."""
        return self._describe(actual, "to match")

    def negated_failure_message(self, actual: Any) -> str:
        """Message for a path that was expected not to match but did."""
        return self._describe(actual, "not to match")