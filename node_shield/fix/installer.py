"""Lock file regeneration through the npm CLI."""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class CommandResult:
    command: List[str]
    cwd: str
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class NpmInstaller:
    """Runs `npm install` to regenerate package-lock.json."""

    def __init__(self, command: Optional[List[str]] = None, timeout_s: int = 600) -> None:
        self.command = command or ["npm", "install"]
        self.timeout_s = timeout_s

    def install(self, cwd: Path) -> CommandResult:
        try:
            proc = subprocess.run(
                self.command,
                cwd=str(cwd),
                text=True,
                capture_output=True,
                timeout=self.timeout_s,
            )
            return CommandResult(
                command=self.command,
                cwd=str(cwd),
                exit_code=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        except FileNotFoundError as exc:
            return CommandResult(
                command=self.command,
                cwd=str(cwd),
                exit_code=127,
                stdout="",
                stderr=str(exc),
            )
        except subprocess.TimeoutExpired as exc:
            return CommandResult(
                command=self.command,
                cwd=str(cwd),
                exit_code=124,
                stdout="",
                stderr=f"Timed out after {exc.timeout}s",
            )
