"""Process exit codes used by noderun itself.

Codes returned by a plugin, or by systemd-run on its behalf, are passed
through untouched.  The values below follow ``sysexits.h`` where one fits.
"""

SUCCESS = 0
INVALID_INVOCATION = 64  # EX_USAGE
UNKNOWN_PLUGIN = 66  # EX_NOINPUT
PARANOIA_FAILED = 77  # EX_NOPERM
CONFIG_ERROR = 78  # EX_CONFIG
SANDBOX_LAUNCH_FAILED = 125
PLUGIN_EXEC_FAILED = 126
