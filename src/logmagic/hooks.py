"""Shell and tmux snippets that wire logmagic into an interactive session."""

import shlex
from pathlib import Path
from typing import Literal

from logmagic.constants import PANE_ID_FORMAT
from logmagic.models import DEFAULT_LOG_DIR

HookKind = Literal["zsh", "bash", "tmux"]
HOOK_KINDS: tuple[HookKind, ...] = ("zsh", "bash", "tmux")

_ZSH_HOOK = """\
# logmagic: mark command boundaries in tmux pane logs
export PROMPT_EOL_MARK=""
autoload -Uz add-zsh-hook
__logmagic_preexec() {{
    [[ -n "$TMUX" ]] && command -v {exe} >/dev/null 2>&1 || return 0
    {exe} mark --session $$ start -- "$1" 2>/dev/null
}}
__logmagic_precmd() {{
    [[ -n "$TMUX" ]] && command -v {exe} >/dev/null 2>&1 || return 0
    {exe} mark --session $$ end 2>/dev/null
}}
add-zsh-hook preexec __logmagic_preexec
add-zsh-hook precmd __logmagic_precmd
"""

# bash has no preexec; a DEBUG trap armed by the prompt stands in for it.
# __logmagic_precmd must stay last in PROMPT_COMMAND so the other prompt
# commands run while the trap is disarmed.
_BASH_HOOK = """\
# logmagic: mark command boundaries in tmux pane logs
__logmagic_armed=
__logmagic_preexec() {{
    [[ -n "$TMUX" && -n "$__logmagic_armed" && -z "$COMP_LINE" ]] || return
    [[ "$BASH_COMMAND" == __logmagic_* ]] && return
    __logmagic_armed=
    command -v {exe} >/dev/null 2>&1 || return
    {exe} mark --session $$ start -- "$(HISTTIMEFORMAT= history 1 | sed 's/^ *[0-9]* *//')" 2>/dev/null
}}
__logmagic_precmd() {{
    if [[ -n "$TMUX" ]] && command -v {exe} >/dev/null 2>&1; then
        {exe} mark --session $$ end 2>/dev/null
    fi
    __logmagic_armed=1
}}
trap '__logmagic_preexec' DEBUG
PROMPT_COMMAND="${{PROMPT_COMMAND:+$PROMPT_COMMAND; }}__logmagic_precmd"
"""

_TMUX_HOOK = """\
# logmagic: capture every pane and track the public address
set-hook -g after-new-session 'pipe-pane -o "{capture}"'
set-hook -g after-new-window 'pipe-pane -o "{capture}"'
set-hook -g after-split-window 'pipe-pane -o "{capture}"'
run-shell -b '{exe} netmon >/dev/null 2>&1'
set -g status-right '#(cat {state_file} 2>/dev/null) | %H:%M'
"""


def render_hook(
    kind: HookKind,
    *,
    executable: str = "logmagic",
    log_dir: Path | None = None,
    state_file: Path | None = None,
) -> str:
    """Return the snippet for *kind*.

    Args:
        kind: ``zsh`` or ``bash`` for an rc-file snippet, ``tmux`` for
            ``.tmux.conf`` lines.
        executable: Command used to invoke logmagic from the snippet.
        log_dir: Pane log directory passed to ``logmagic capture`` (tmux only).
        state_file: Public address state file shown in the status line (tmux only).

    Raises:
        ValueError: If *kind* is not a supported hook kind.
    """
    exe = shlex.quote(executable)
    if kind == "zsh":
        return _ZSH_HOOK.format(exe=exe)
    if kind == "bash":
        return _BASH_HOOK.format(exe=exe)
    if kind == "tmux":
        # Paths go in unquoted: the lines already nest two levels of quoting.
        log_dir = log_dir or DEFAULT_LOG_DIR
        return _TMUX_HOOK.format(
            exe=executable,
            capture=f"{executable} capture {log_dir} {PANE_ID_FORMAT}",
            state_file=state_file or "/dev/null",
        )
    raise ValueError(f"unsupported hook kind: {kind}")
