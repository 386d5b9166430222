"""External process integration for lockrun.

- runner: running the wrapped command and translating its exit status
"""

from .runner import (
    exec_failure_status,
    run_command,
    shell_command,
    translate_returncode,
)

__all__ = [
    "exec_failure_status",
    "run_command",
    "shell_command",
    "translate_returncode",
]
