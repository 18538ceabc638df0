"""Exit codes for plugkit CLI commands."""

# Success
SUCCESS = 0

# Errors
GENERAL_ERROR = 1
INVALID_ARGS = 2
SCHEMA_INVALID = 3
VALUE_INVALID = 4
CONFIG_INVALID = 5
