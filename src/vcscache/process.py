from __future__ import annotations
import logging, subprocess
from typing import List, Optional, Sequence
from tenacity import Retrying, stop_after_attempt, retry_if_exception_type
from .errors import CommandError

log = logging.getLogger(__name__)


def render_argv(argv: Sequence[str], **values: str) -> List[str]:
    """Fill `{key}` placeholders inside each argv element. No shell involved."""
    out = []
    for arg in argv:
        for key, val in values.items():
            arg = arg.replace("{" + key + "}", val)
        out.append(arg)
    return out


def _run_once(argv: List[str], cwd: Optional[str]) -> str:
    log.debug("Running %s (cwd=%s)", argv, cwd)
    try:
        proc = subprocess.run(argv, cwd=cwd, capture_output=True, text=True)
    except OSError as e:
        raise CommandError(argv, -1, str(e)) from e
    if proc.returncode != 0:
        raise CommandError(argv, proc.returncode, proc.stderr)
    return proc.stdout


def run_command(argv: Sequence[str], cwd: Optional[str] = None, retries: int = 0) -> str:
    argv = list(argv)
    for attempt in Retrying(reraise=True, stop=stop_after_attempt(retries + 1),
                            retry=retry_if_exception_type(CommandError)):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                log.warning("Retrying %s (attempt %s/%s)", argv[0], attempt.retry_state.attempt_number, retries + 1)
            return _run_once(argv, cwd)
