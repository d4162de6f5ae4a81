"""Shared constants for the marker protocol and tmux integration."""

import re

# Invisible OSC escape sequences embedded in the pane output stream.
# Terminals ignore unknown OSC sequences, so the user never sees these.
#   Start:  \033]1337;LogExec:<id>|<unix_ts>|<base64_command>\007
#   End:    \033]1337;LogEnd:<id>\007
#   Prompt: \033]1337;LogPrompt\007
OSC_PREFIX = b"\033]1337;"
OSC_TERMINATOR = b"\007"

EXEC_TAG = b"LogExec:"
END_TAG = b"LogEnd:"
PROMPT_TAG = b"LogPrompt"

MARKER_RE = re.compile(rb"\033\]1337;(LogExec:|LogEnd:|LogPrompt)([^\007]*)\007")

# tmux format string naming a pane; also the prefix of that pane's log files.
PANE_ID_FORMAT = "#{session_name}-#{window_index}-#{pane_index}-#{pane_id}"

STATE_RETRYING = "Retrying..."
STATE_OFFLINE = "Offline"
