"""Static analysis by running semgrep over a skill directory."""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path
from typing import Any

from skillaudit.core import (
    Config,
    Finding,
    RuleInfo,
    ScanAborted,
    Scanner,
    ScanResult,
    Severity,
    run_with_timeout,
    which_exists,
)

_SCANNER_NAME = "semgrep"

SEMGREP_TIMEOUT: float = 30.0
"""Seconds to wait for semgrep before killing it and marking the scan skipped."""


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _dig(value: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_uint(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


def _severity(label: str) -> Severity:
    upper = label.upper()
    if upper == "ERROR":
        return Severity.ERROR
    if upper == "WARNING":
        return Severity.WARNING
    return Severity.INFO


def _config_args(config: Config) -> list[str]:
    custom = config.semgrep.config
    if custom is not None:
        is_registry = custom.startswith(("p/", "r/")) or custom == "auto"
        is_url = "://" in custom
        if is_registry or is_url or Path(custom).exists():
            return ["--config", custom]
        print(
            f"Warning: semgrep config '{custom}' is not a registry shorthand, URL, or existing "
            "path — skipping custom config",
            file=sys.stderr,
        )
        return []
    for candidate in ("semgrep.yml", ".semgrep.yml"):
        if Path(candidate).exists():
            return ["--config", candidate]
    return []


def _to_finding(item: Any) -> Finding:
    check_id = _as_str(_dig(item, "check_id")) or "unknown"
    file = _as_str(_dig(item, "path"))
    lines = _as_str(_dig(item, "extra", "lines"))
    remediation = _as_str(_dig(item, "extra", "metadata", "fix")) or _as_str(
        _dig(item, "extra", "fix")
    )
    return Finding(
        rule_id=f"semgrep/{check_id}",
        message=_as_str(_dig(item, "extra", "message")) or "semgrep finding",
        severity=_severity(_as_str(_dig(item, "extra", "severity")) or "WARNING"),
        scanner=_SCANNER_NAME,
        file=Path(file) if file is not None else None,
        line=_as_uint(_dig(item, "start", "line")),
        column=_as_uint(_dig(item, "start", "col")),
        snippet=lines.strip() if lines is not None else None,
        remediation=remediation,
    )


class SemgrepScanner(Scanner):
    """Run ``semgrep scan --json --quiet`` and report its results."""

    name = _SCANNER_NAME
    description = "Static analysis via semgrep (external tool)"

    def is_available(self) -> bool:
        return which_exists("semgrep")

    def scan(self, path: str | Path, config: Config | None = None) -> ScanResult:
        start = time.monotonic()
        config = config or Config()

        args: list[str | Path] = ["semgrep", "scan", "--json", "--quiet"]
        args.extend(_config_args(config))
        if not config.semgrep.metrics:
            args.append("--metrics=off")
        env = None if config.semgrep.version_check else {"SEMGREP_ENABLE_VERSION_CHECK": "0"}
        args.append(Path(path))

        try:
            output = run_with_timeout(args, SEMGREP_TIMEOUT, _SCANNER_NAME, start, env)
        except ScanAborted as aborted:
            return aborted.result

        # semgrep exits non-zero both for findings and for errors; rely on stdout.
        stdout = output.stdout.decode("utf-8", errors="replace")
        if not stdout.strip():
            return ScanResult(scanner_name=_SCANNER_NAME, duration_ms=_elapsed_ms(start))

        try:
            root = json.loads(stdout)
        except ValueError as exc:
            return ScanResult.from_error(
                _SCANNER_NAME, f"Failed to parse semgrep JSON: {exc}", _elapsed_ms(start)
            )

        results = _dig(root, "results")
        if not isinstance(results, list):
            return ScanResult(scanner_name=_SCANNER_NAME, duration_ms=_elapsed_ms(start))

        findings = [_to_finding(item) for item in results]
        total_files = _as_uint(_dig(root, "stats", "total_files"))
        if total_files is None:
            total_files = len({f.file for f in findings if f.file is not None})

        return ScanResult(
            scanner_name=_SCANNER_NAME,
            findings=findings,
            files_scanned=total_files,
            duration_ms=_elapsed_ms(start),
        )


def rules() -> list[RuleInfo]:
    """Return a representative set of the rules semgrep reports."""
    return [
        RuleInfo(
            id="semgrep/javascript.express.security.audit.xss.direct-response-write."
            "direct-response-write",
            severity="error",
            scanner=_SCANNER_NAME,
            message="Direct response write (XSS vulnerability)",
            remediation="Escape output or use a templating engine",
        ),
        RuleInfo(
            id="semgrep/python.lang.security.audit.dangerous-spawn-process."
            "dangerous-spawn-process",
            severity="error",
            scanner=_SCANNER_NAME,
            message="Dangerous process spawn (Command Injection)",
            remediation="Use subprocess with a list of arguments instead of shell=True",
        ),
        RuleInfo(
            id="semgrep/bash.curl.security.curl-pipe-bash.curl-pipe-bash",
            severity="error",
            scanner=_SCANNER_NAME,
            message="Curl piped to bash",
            remediation="Download, verify, then execute",
        ),
    ]