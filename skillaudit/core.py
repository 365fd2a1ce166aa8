"""Shared types and helpers used by every scanner."""

from __future__ import annotations

import enum
import os
import re
import stat
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence

EXTERNAL_TOOL_TIMEOUT: float = 60.0
"""Default timeout, in seconds, for external tool invocations."""

MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024
"""Largest file, in bytes, that a built-in scanner will read into memory."""

_RE_INLINE_SUPPRESS = re.compile(
    r"\s*#\s*(scan|audit|oxidized-agentic-audit):ignore\s*\Z", re.IGNORECASE
)


class Severity(enum.Enum):
    """Severity of a finding."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Finding:
    """A single issue reported by a scanner."""

    rule_id: str
    message: str
    severity: Severity
    scanner: str
    file: Path | None = None
    line: int | None = None
    column: int | None = None
    snippet: str | None = None
    suppressed: bool = False
    suppression_reason: str | None = None
    remediation: str | None = None


@dataclass
class ScanResult:
    """Outcome of running one scanner against one directory."""

    scanner_name: str
    findings: list[Finding] = field(default_factory=list)
    files_scanned: int = 0
    skipped: bool = False
    skip_reason: str | None = None
    error: str | None = None
    duration_ms: int = 0
    scanner_score: int | None = None
    scanner_grade: str | None = None

    @classmethod
    def from_error(cls, scanner_name: str, message: str, duration_ms: int = 0) -> "ScanResult":
        """Build a result for a scanner that failed."""
        return cls(scanner_name=scanner_name, error=message, duration_ms=duration_ms)

    @classmethod
    def from_skip(cls, scanner_name: str, reason: str) -> "ScanResult":
        """Build a result for a scanner that did not run."""
        return cls(scanner_name=scanner_name, skipped=True, skip_reason=reason)


@dataclass
class AllowlistConfig:
    """Domains and package registries considered trusted."""

    domains: list[str] = field(default_factory=list)
    registries: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.domains = [entry.strip().lower() for entry in self.domains]
        self.registries = [entry.strip().lower() for entry in self.registries]


@dataclass
class SemgrepConfig:
    """Options passed to semgrep."""

    config: str | None = None
    metrics: bool = False
    version_check: bool = False


@dataclass
class Config:
    """Scan configuration."""

    allowlist: AllowlistConfig = field(default_factory=AllowlistConfig)
    semgrep: SemgrepConfig = field(default_factory=SemgrepConfig)


@dataclass(frozen=True)
class RuleInfo:
    """Metadata describing one audit rule."""

    id: str
    severity: str
    scanner: str
    message: str
    remediation: str


class ScanAborted(Exception):
    """An external tool could not complete; carries the prepared result."""

    def __init__(self, result: ScanResult) -> None:
        super().__init__(result.error or result.skip_reason or "scan aborted")
        self.result = result


class FileReadError(Exception):
    """A file could not be read safely."""


class Scanner(ABC):
    """Base class of every scanner."""

    name: str = ""
    description: str = ""

    def is_available(self) -> bool:
        """Return True when the scanner's dependencies are installed."""
        return True

    @abstractmethod
    def scan(self, path: Path, config: Config) -> ScanResult:
        """Scan the directory at ``path``."""


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _extension(path: Path) -> str:
    return path.suffix[1:].lower() if path.suffix else ""


def collect_files(path: str | os.PathLike, extensions: Iterable[str]) -> list[Path]:
    """Return regular files under ``path`` whose extension is in ``extensions``.

    Symbolic links are neither followed nor returned. The result is sorted.
    """
    root = Path(path)
    wanted = {ext.lower() for ext in extensions}

    def _is_regular(candidate: Path) -> bool:
        try:
            return stat.S_ISREG(candidate.lstat().st_mode)
        except OSError:
            return False

    if _is_regular(root):
        return [root] if _extension(root) in wanted else []

    found: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root, followlinks=False):
        directory = Path(dirpath)
        for filename in filenames:
            candidate = directory / filename
            if not _is_regular(candidate):
                continue
            try:
                candidate.relative_to(root)
            except ValueError:
                continue
            if _extension(candidate) in wanted:
                found.append(candidate)
    return sorted(found)


def which_exists(cmd: str) -> bool:
    """Return True if an executable named ``cmd`` is on ``PATH``."""
    search = os.environ.get("PATH")
    if not search:
        return False
    for directory in search.split(os.pathsep):
        candidate = Path(directory) / cmd
        if not candidate.is_file():
            continue
        if os.name != "posix":
            return True
        try:
            if candidate.stat().st_mode & 0o111:
                return True
        except OSError:
            continue
    return False


def run_with_timeout(
    args: Sequence[str | os.PathLike],
    timeout: float = EXTERNAL_TOOL_TIMEOUT,
    scanner_name: str = "",
    start: float | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess:
    """Run an external tool, killing it once ``timeout`` seconds have passed since ``start``.

    Raises ScanAborted holding a skipped result on timeout and an error
    result when the tool cannot be started or its output cannot be read.
    """
    if start is None:
        start = time.monotonic()
    command = [os.fspath(arg) for arg in args]
    full_env = {**os.environ, **env} if env else None
    try:
        proc = subprocess.Popen(
            command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=full_env
        )
    except OSError as exc:
        raise ScanAborted(
            ScanResult.from_error(
                scanner_name, f"Failed to run {scanner_name}: {exc}", _elapsed_ms(start)
            )
        ) from exc

    remaining = max(0.0, timeout - (time.monotonic() - start))
    try:
        stdout, stderr = proc.communicate(timeout=remaining)
    except subprocess.TimeoutExpired as exc:
        proc.kill()
        proc.communicate()
        raise ScanAborted(
            ScanResult(
                scanner_name=scanner_name,
                skipped=True,
                skip_reason=f"{scanner_name} timed out after {int(timeout)}s",
                duration_ms=_elapsed_ms(start),
            )
        ) from exc
    except OSError as exc:
        proc.kill()
        raise ScanAborted(
            ScanResult.from_error(
                scanner_name,
                f"Failed to read {scanner_name} output: {exc}",
                _elapsed_ms(start),
            )
        ) from exc
    return subprocess.CompletedProcess(command, proc.returncode, stdout, stderr)


def read_file_limited(path: str | os.PathLike) -> str:
    """Read a regular UTF-8 file no larger than MAX_FILE_SIZE_BYTES.

    Raises FileReadError for missing, special, oversized or non-UTF-8 files.
    """
    try:
        path_meta = os.stat(path)
    except OSError as exc:
        raise FileReadError(str(exc)) from exc
    if not stat.S_ISREG(path_meta.st_mode):
        raise FileReadError("not a regular file — skipping to prevent stream exhaustion")

    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise FileReadError(str(exc)) from exc

    with handle:
        try:
            size = os.fstat(handle.fileno()).st_size
        except OSError as exc:
            raise FileReadError(f"cannot stat open file: {exc}") from exc
        if size > MAX_FILE_SIZE_BYTES:
            raise FileReadError(
                f"file too large ({size} bytes); maximum is {MAX_FILE_SIZE_BYTES} "
                "bytes — skipping to prevent memory exhaustion"
            )
        try:
            data = handle.read(MAX_FILE_SIZE_BYTES + 1)
        except OSError as exc:
            raise FileReadError(str(exc)) from exc

    if len(data) > MAX_FILE_SIZE_BYTES:
        raise FileReadError(f"file exceeded {MAX_FILE_SIZE_BYTES} bytes during read — skipping")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FileReadError(str(exc)) from exc


def is_suppressed_inline(line: str) -> bool:
    """Return True if ``line`` ends with a trailing ``# ...:ignore`` comment."""
    return _RE_INLINE_SUPPRESS.search(line) is not None