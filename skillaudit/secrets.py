"""Secret detection by running gitleaks over a skill directory."""

from __future__ import annotations

import json
import os
import tempfile
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
    run_with_timeout,
    which_exists,
)

_SCANNER_NAME = "secrets"
_REMEDIATION = "Rotate the leaked secret immediately and remove it from the codebase"


def redact_secret(value: str) -> str:
    """Mask a matched secret so that it never reaches logs or reports."""
    length = len(value.encode("utf-8"))
    if length > 8:
        prefix = value.encode("utf-8")[:4].decode("utf-8", errors="ignore")
        return f"{prefix}...{'*' * (min(length, 20) - 4)}"
    return "*" * length


def _field_str(item: Any, *keys: str) -> str | None:
    if not isinstance(item, dict):
        return None
    for key in keys:
        value = item.get(key)
        if isinstance(value, str):
            return value
    return None


def _field_uint(item: Any, *keys: str) -> int | None:
    if not isinstance(item, dict):
        return None
    for key in keys:
        value = item.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
    return None


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _to_finding(item: Any) -> Finding:
    rule = _field_str(item, "RuleID", "ruleId") or "unknown"
    file = _field_str(item, "File", "file")
    matched = _field_str(item, "Match", "match")
    return Finding(
        rule_id=f"secrets/{rule}",
        message=_field_str(item, "Description", "description") or "Secret detected",
        severity=Severity.ERROR,
        scanner=_SCANNER_NAME,
        file=Path(file) if file is not None else None,
        line=_field_uint(item, "StartLine", "startLine"),
        snippet=redact_secret(matched) if matched is not None else None,
        remediation=_REMEDIATION,
    )


class SecretsScanner(Scanner):
    """Run ``gitleaks detect`` without git history and report every leak as an error."""

    name = _SCANNER_NAME
    description = "Secret scanning via gitleaks (external tool)"

    def is_available(self) -> bool:
        return which_exists("gitleaks")

    def scan(self, path: str | Path, config: Config | None = None) -> ScanResult:
        start = time.monotonic()
        try:
            fd, report_name = tempfile.mkstemp(suffix=".json")
        except OSError as exc:
            return ScanResult.from_error(
                _SCANNER_NAME, f"Failed to create temp file: {exc}", _elapsed_ms(start)
            )
        os.close(fd)
        report_path = Path(report_name)
        try:
            return self._run(Path(path), report_path, start)
        finally:
            report_path.unlink(missing_ok=True)

    def _run(self, path: Path, report_path: Path, start: float) -> ScanResult:
        args = [
            "gitleaks", "detect",
            "--source", path,
            "--no-git",
            "--report-format", "json",
            "--report-path", report_path,
        ]
        try:
            output = run_with_timeout(args, EXTERNAL_TOOL_TIMEOUT, _SCANNER_NAME, start)
        except ScanAborted as aborted:
            return aborted.result

        # Exit 0 means clean, 1 means leaks found; anything higher is a failure.
        if output.returncode > 1:
            stderr = output.stderr.decode("utf-8", errors="replace").strip()
            return ScanResult.from_error(
                _SCANNER_NAME,
                f"gitleaks error (exit {output.returncode}): {stderr}",
                _elapsed_ms(start),
            )

        try:
            content = report_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return ScanResult.from_error(
                _SCANNER_NAME, f"Failed to read gitleaks report: {exc}", _elapsed_ms(start)
            )

        try:
            items = json.loads(content)
            if not isinstance(items, list):
                raise ValueError(f"expected a JSON array, found {type(items).__name__}")
        except ValueError as exc:
            return ScanResult.from_error(
                _SCANNER_NAME, f"Failed to parse gitleaks report: {exc}", _elapsed_ms(start)
            )

        findings = [_to_finding(item) for item in items]
        unique_files = {f.file for f in findings if f.file is not None}

        return ScanResult(
            scanner_name=_SCANNER_NAME,
            findings=findings,
            files_scanned=len(unique_files) or 1,
            duration_ms=_elapsed_ms(start),
        )


def rules() -> list[RuleInfo]:
    """Return a representative set of the rules gitleaks reports."""
    return [
        RuleInfo(
            id="secrets/generic-api-key",
            severity="error",
            scanner=_SCANNER_NAME,
            message="Detected a Generic API Key",
            remediation=_REMEDIATION,
        ),
        RuleInfo(
            id="secrets/aws-access-key",
            severity="error",
            scanner=_SCANNER_NAME,
            message="Detected an AWS Access Key",
            remediation="Revoke the key immediately in AWS console",
        ),
        RuleInfo(
            id="secrets/github-pat",
            severity="error",
            scanner=_SCANNER_NAME,
            message="Detected a GitHub Personal Access Token",
            remediation="Revoke the token in GitHub settings",
        ),
        RuleInfo(
            id="secrets/private-key",
            severity="error",
            scanner=_SCANNER_NAME,
            message="Detected a Private Key (SSH, RSA, etc.)",
            remediation="Remove the key and rotate any credentials it protected",
        ),
    ]