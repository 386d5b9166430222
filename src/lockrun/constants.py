"""Constants for lockrun CLI."""

import os

# Exit codes (sysexits.h)
EXIT_OK = 0
EXIT_FAILURE = 1
EX_USAGE = 64
EX_DATAERR = 65
EX_NOINPUT = 66
EX_OSERR = 71
EX_CANTCREAT = 73

# Default exit code when the lock cannot be obtained (contention or timeout)
DEFAULT_CONFLICT_EXIT_CODE = EXIT_FAILURE

# Offset added to the signal number of a child killed by a signal
SIGNAL_EXIT_OFFSET = 128

# Command strings (-c)
SHELL_ENV_VAR = "SHELL"
DEFAULT_SHELL = "/bin/sh"

# Configuration lookup
CONFIG_ENV_VAR = "LOCKRUN_CONFIG"
DEFAULT_CONFIG_PATH = os.path.join("~", ".config", "lockrun", "config.toml")

# Mode for newly created lock files (before umask)
LOCK_FILE_MODE = 0o666
