import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)


def setup_cpu_limits():
    try:
        current_process = psutil.Process()

        if hasattr(os, 'nice'):
            os.nice(10)  # Unix/Linux: increase nice value (lower priority)
        elif hasattr(current_process, 'nice'):
            current_process.nice(psutil.BELOW_NORMAL_PRIORITY_CLASS)  # Windows

        # Limit to 75% of available CPU cores
        cpu_count = psutil.cpu_count() or 1
        max_cores = max(1, int(cpu_count * 0.75))

        if hasattr(current_process, 'cpu_affinity'):
            available_cores = list(range(min(max_cores, cpu_count)))
            current_process.cpu_affinity(available_cores)
            logger.info(f"Limited to {len(available_cores)} of {cpu_count} CPU cores")

    except (psutil.Error, OSError, ValueError) as e:
        logger.warning(f"Could not set CPU limits: {e}")


def limit_subprocess_resources(cmd: List[str]) -> List[str]:
    if sys.platform == 'win32':
        return cmd
    else:
        return ['nice', '-n', '10'] + cmd


def default_worker_count(max_workers: int = 0) -> int:
    if max_workers and max_workers > 0:
        return max_workers
    cpu_count = psutil.cpu_count() or 1
    return max(1, min(4, int(cpu_count * 0.75)))


@dataclass
class ToolResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def output(self) -> str:
        """Whichever channel carries text; ffmpeg tools like to write to stderr."""
        if self.stdout and self.stdout.strip():
            return self.stdout
        return self.stderr or ''


class ExternalToolRunner:
    """Runs an external command and reports (stdout, stderr, exit code).

    Implementations must not raise for a non-zero exit; callers decide what a
    failing exit code means. OSError is raised when the command cannot start.
    With on_output set, each line of combined output is handed over while the
    command runs and the whole of it is reported as stderr.
    """

    def run(self, command: str, args: List[str],
            on_output: Optional[Callable[[str], None]] = None) -> ToolResult:
        raise NotImplementedError


class SubprocessRunner(ExternalToolRunner):
    def __init__(self, executables: Optional[Dict[str, str]] = None, low_priority: bool = False):
        self.executables = executables or {}
        self.low_priority = low_priority

    def run(self, command: str, args: List[str],
            on_output: Optional[Callable[[str], None]] = None) -> ToolResult:
        cmd = [self.executables.get(command, command)] + [str(arg) for arg in args]
        if self.low_priority:
            cmd = limit_subprocess_resources(cmd)

        logger.debug(f"Running: {' '.join(cmd)}")
        if on_output is not None:
            return self._run_streaming(cmd, on_output)

        result = subprocess.run(cmd, capture_output=True, text=True, encoding='utf-8', errors='replace')
        return ToolResult(result.stdout or '', result.stderr or '', result.returncode)

    @staticmethod
    def _run_streaming(cmd: List[str], on_output: Callable[[str], None]) -> ToolResult:
        lines = []
        # text mode splits ffmpeg's carriage-return status updates into lines
        with subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                              text=True, encoding='utf-8', errors='replace') as process:
            for line in process.stdout:
                lines.append(line)
                on_output(line)
        return ToolResult('', ''.join(lines), process.returncode)
