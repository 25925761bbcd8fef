"""Text-level sanitizer applied before local simulation.

`sanitize` rewrites dangerous call names to `BLOCKED_<name>(` and collapses
shell escapes (`!cmd`) to a fixed marker. It never parses the program and never
fails. It is only applied on the local simulation path: the native and remote
Octave backends receive the program as submitted and must contain it
themselves.
"""

import re
from typing import Tuple

SHELL_ESCAPE_MARKER = "BLOCKED_SYSTEM_COMMAND"

# process invocation and dynamic evaluation
EXECUTION_CALLS: Tuple[str, ...] = ("system", "exec", "eval", "feval")
# filesystem primitives
FILESYSTEM_CALLS: Tuple[str, ...] = (
    "cd",
    "fopen",
    "fwrite",
    "fprintf",
    "fread",
    "readdir",
    "mkdir",
    "rmdir",
    "unlink",
)
DENY_LIST: Tuple[str, ...] = EXECUTION_CALLS + FILESYSTEM_CALLS

_SHELL_ESCAPE = re.compile(r"^([ \t]*)!.*$", re.MULTILINE)
_CALLS = {name: re.compile(rf"(?<![\w.]){name}\s*\(") for name in DENY_LIST}


def sanitize(code: str) -> str:
    """Return `code` with deny-listed calls and shell escapes neutralized.

    A call is matched on its name token (`feval(` is never mistaken for
    `eval(`, `fprintf(` never for a longer identifier), independent of its
    arguments. Any line whose first non-blank character is `!` becomes
    `BLOCKED_SYSTEM_COMMAND`.
    """
    sanitized = _SHELL_ESCAPE.sub(lambda m: m.group(1) + SHELL_ESCAPE_MARKER, code)
    for name, pattern in _CALLS.items():
        sanitized = pattern.sub(f"BLOCKED_{name}(", sanitized)
    return sanitized


def blocked_calls(code: str) -> Tuple[str, ...]:
    """Names from the deny-list that appear as calls in `code`."""
    return tuple(name for name, pattern in _CALLS.items() if pattern.search(code))
