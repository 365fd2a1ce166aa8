"""Shell script linting by running ShellCheck over a skill directory."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

from skillaudit.core import (
    EXTERNAL_TOOL_TIMEOUT,
    Config,
    Finding,
    RuleInfo,
    ScanAborted,
    Scanner,
    ScanResult,
    Severity,
    collect_files,
    run_with_timeout,
    which_exists,
)

_SCANNER_NAME = "shellcheck"
_EXTENSIONS = ("sh", "bash")
_BATCH_SIZE = 50
_SEVERITIES = {"error": Severity.ERROR, "warning": Severity.WARNING}


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _as_uint(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


def _replacement(item: dict) -> str | None:
    fix = item.get("fix")
    replacements = fix.get("replacements") if isinstance(fix, dict) else None
    if not isinstance(replacements, list) or not replacements:
        return None
    first = replacements[0]
    value = first.get("replacement") if isinstance(first, dict) else None
    return value if isinstance(value, str) else None


def _to_finding(item: Any) -> Finding | None:
    if not isinstance(item, dict):
        return None
    code = _as_uint(item.get("code"))
    # Real codes are 1000 and up; a missing or zero code means malformed output.
    if not code:
        return None
    level = item.get("level")
    message = item.get("message")
    file = item.get("file")
    return Finding(
        rule_id=f"shellcheck/SC{code}",
        message=message if isinstance(message, str) else "shellcheck finding",
        severity=_SEVERITIES.get(level if isinstance(level, str) else "warning", Severity.INFO),
        scanner=_SCANNER_NAME,
        file=Path(file) if isinstance(file, str) else None,
        line=_as_uint(item.get("line")),
        column=_as_uint(item.get("column")),
        snippet=_replacement(item),
        remediation=f"See https://www.shellcheck.net/wiki/SC{code}",
    )


class ShellCheckScanner(Scanner):
    """Run ``shellcheck -f json --severity=style`` over every shell script."""

    name = _SCANNER_NAME
    description = "Shell script linting via shellcheck (external tool)"

    def is_available(self) -> bool:
        return which_exists("shellcheck")

    def scan(self, path: str | Path, config: Config | None = None) -> ScanResult:
        start = time.monotonic()
        files = collect_files(path, _EXTENSIONS)
        if not files:
            return ScanResult(scanner_name=_SCANNER_NAME, duration_ms=_elapsed_ms(start))

        findings: list[Finding] = []
        error_msg: str | None = None

        for offset in range(0, len(files), _BATCH_SIZE):
            batch = files[offset:offset + _BATCH_SIZE]
            args = ["shellcheck", "-f", "json", "--severity=style", *batch]
            try:
                output = run_with_timeout(args, EXTERNAL_TOOL_TIMEOUT, _SCANNER_NAME, start)
            except ScanAborted as aborted:
                return aborted.result

            # A non-zero exit just means issues were found.
            stdout = output.stdout.decode("utf-8", errors="replace")
            if not stdout.strip():
                continue
            try:
                items = json.loads(stdout)
                if not isinstance(items, list):
                    raise ValueError(f"expected a JSON array, found {type(items).__name__}")
            except ValueError as exc:
                error_msg = f"Failed to parse shellcheck JSON: {exc}"
                continue

            findings.extend(f for f in map(_to_finding, items) if f is not None)

        return ScanResult(
            scanner_name=_SCANNER_NAME,
            findings=findings,
            files_scanned=len(files),
            error=error_msg,
            duration_ms=_elapsed_ms(start),
        )


def rules() -> list[RuleInfo]:
    """Return a representative set of the rules ShellCheck reports."""
    entries = (
        ("SC2086", "info", "Double quote to prevent globbing and word splitting"),
        ("SC2046", "warning", "Quote this to prevent word splitting"),
        ("SC2006", "warning", "Use $(...) instead of legacy `...`"),
        ("SC2039", "warning", "In POSIX sh, something is undefined"),
        ("SC2059", "info", "Don't use variables in the printf format string"),
    )
    return [
        RuleInfo(
            id=f"shellcheck/{code}",
            severity=severity,
            scanner=_SCANNER_NAME,
            message=message,
            remediation=f"See https://www.shellcheck.net/wiki/{code}",
        )
        for code, severity, message in entries
    ]