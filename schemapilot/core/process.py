import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from schemapilot.core.errors import EngineTimeout, ExternalFailure

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    command: List[str]
    exit_status: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def build_command(command: Union[str, Sequence[str]], label: Optional[str] = None, label_flag: Optional[str] = None) -> List[str]:
    """Split a configured command and append the optional label argument."""
    argv = shlex.split(command) if isinstance(command, str) else list(command)
    if not argv:
        raise ExternalFailure("Empty command")
    if label:
        if label_flag:
            argv.append(label_flag)
        argv.append(label)
    return argv


def run_command(
    command: Union[str, Sequence[str]],
    label: Optional[str] = None,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    label_flag: Optional[str] = None,
) -> ProcessResult:
    """
    Run an external process and capture its output.

    A non-zero exit is returned, not raised. Timeouts raise EngineTimeout and a
    missing executable raises ExternalFailure.
    """
    argv = build_command(command, label, label_flag)
    log.info("Running %s", " ".join(argv))
    try:
        completed = subprocess.run(
            argv,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise EngineTimeout(f"'{' '.join(argv)}' timed out after {timeout}s") from e
    except OSError as e:
        raise ExternalFailure(f"Could not run '{argv[0]}': {e}") from e

    if completed.returncode != 0:
        log.warning("%s exited with status %d", argv[0], completed.returncode)
    return ProcessResult(
        command=argv,
        exit_status=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
