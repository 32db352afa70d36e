"""
Exit codes for Joidu Focus.

Scripts wrapping the CLI can tell "nothing to do" apart from real failures.
"""

SUCCESS = 0

# The state file could not be written, or the command refused to act
ERROR_GENERAL = 1

# Bad title, duration, period or format
ERROR_INVALID_ARGS = 2

# No focus session (current or completed) where one was expected
ERROR_NOT_FOUND = 5

_NAMES = {
    SUCCESS: "SUCCESS",
    ERROR_GENERAL: "ERROR_GENERAL",
    ERROR_INVALID_ARGS: "ERROR_INVALID_ARGS",
    ERROR_NOT_FOUND: "ERROR_NOT_FOUND",
}


def get_exit_code_name(code: int) -> str:
    """Symbolic name of *code*, for logs and error output."""
    return _NAMES.get(code, f"UNKNOWN({code})")
