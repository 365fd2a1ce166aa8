"""Audit shell scripts for unsafe package installation commands."""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Iterator

from skillaudit.core import (
    Config,
    FileReadError,
    Finding,
    RuleInfo,
    Scanner,
    ScanResult,
    Severity,
    collect_files,
    is_suppressed_inline,
    read_file_limited,
)

_SCANNER_NAME = "package_install"
_EXTENSIONS = ("sh", "bash", "zsh")

_RE_NPM_INSTALL = re.compile(r"\bnpm\s+(install|i|add)\b", re.IGNORECASE)
_RE_BUN_ADD = re.compile(r"\bbun\s+(add|install)\b", re.IGNORECASE)
_RE_PIP_INSTALL = re.compile(r"\bpip3?\s+install\b", re.IGNORECASE)
_RE_YARN_ADD = re.compile(r"\byarn\s+(add|install)\b", re.IGNORECASE)
_RE_PNPM_ADD = re.compile(r"\bpnpm\s+(add|install|i)\b", re.IGNORECASE)
_RE_LATEST = re.compile(r"@latest\b")
_RE_HAS_REGISTRY = re.compile(r"--registry[=\s]", re.IGNORECASE)
_RE_HAS_INDEX_URL = re.compile(r"(--index-url\s|-i\s)", re.IGNORECASE)
_RE_REGISTRY_URL = re.compile(r"--registry[=\s](https?://\S+)", re.IGNORECASE)
_RE_REGISTRY_HOST = re.compile(r"https?://(?:[^@/?#\s]+@)?([^/?#:\s]+)", re.IGNORECASE)

_F1_NPM = (
    "pkg/F1-npm",
    "npm install without --registry — may pull from unexpected source",
    "Specify --registry explicitly: npm install --registry https://registry.npmjs.org",
)
_F1_BUN = (
    "pkg/F1-bun",
    "bun add without --registry — may pull from unexpected source",
    "Specify --registry explicitly",
)
_F1_PIP = (
    "pkg/F1-pip",
    "pip install without --index-url — may pull from unexpected source",
    "Specify --index-url explicitly: pip install --index-url https://pypi.org/simple/",
)
_F1_YARN = (
    "pkg/F1-yarn",
    "yarn add without --registry — may pull from unexpected source",
    "Specify --registry explicitly: yarn add --registry https://registry.npmjs.org <pkg>",
)
_F1_PNPM = (
    "pkg/F1-pnpm",
    "pnpm add/install without --registry — may pull from unexpected source",
    "Specify --registry explicitly: pnpm add --registry https://registry.npmjs.org <pkg>",
)
_F2_UNPINNED = (
    "pkg/F2-unpinned",
    "@latest install — unpinned, supply chain risk on future runs",
    "Pin to an exact version: @1.2.3",
)
_F3_REGISTRY = (
    "pkg/F3-registry",
    "Registry URL not in allowlist",
    "Add registry to oxidized-agentic-audit.toml [allowlist.registries] or use an approved registry",
)

# Installer commands that must carry an explicit source flag, paired with that flag's pattern.
_UNSOURCED_CHECKS = (
    (_RE_NPM_INSTALL, _RE_HAS_REGISTRY, _F1_NPM),
    (_RE_BUN_ADD, _RE_HAS_REGISTRY, _F1_BUN),
    (_RE_PIP_INSTALL, _RE_HAS_INDEX_URL, _F1_PIP),
    (_RE_YARN_ADD, _RE_HAS_REGISTRY, _F1_YARN),
    (_RE_PNPM_ADD, _RE_HAS_REGISTRY, _F1_PNPM),
)


def _lines(content: str) -> Iterator[str]:
    parts = content.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    for part in parts:
        yield part[:-1] if part.endswith("\r") else part


def _make_snippet(line: str) -> str:
    trimmed = line.strip()
    if len(trimmed.encode("utf-8")) > 120:
        return f"{trimmed[:117]}..."
    return trimmed


def _host_allowed(url: str, allowed: list[str]) -> bool:
    match = _RE_REGISTRY_HOST.search(url)
    host = match.group(1).lower() if match else ""
    if not host:
        return False
    return any(
        host == entry or (host.endswith(entry) and host[: -len(entry)].endswith("."))
        for entry in allowed
    )


class PackageInstallScanner(Scanner):
    """Flag package installs without an explicit registry, unpinned versions and unknown registries."""

    name = _SCANNER_NAME
    description = "Package install audit — detects unregistered/unpinned installs"

    def is_available(self) -> bool:
        return True

    def scan(self, path: str | Path, config: Config | None = None) -> ScanResult:
        start = time.monotonic()
        config = config or Config()
        files = collect_files(path, _EXTENSIONS)
        allowed = [entry for entry in config.allowlist.registries if entry]
        findings: list[Finding] = []

        def emit(rule: tuple[str, str, str], file: Path, line_num: int, line: str,
                 message: str | None = None) -> None:
            rule_id, default_message, remediation = rule
            findings.append(
                Finding(
                    rule_id=rule_id,
                    message=message or default_message,
                    severity=Severity.WARNING,
                    scanner=_SCANNER_NAME,
                    file=file,
                    line=line_num,
                    snippet=_make_snippet(line),
                    remediation=remediation,
                )
            )

        for file in files:
            try:
                content = read_file_limited(file)
            except FileReadError:
                continue

            for line_num, line in enumerate(_lines(content), start=1):
                trimmed = line.strip()
                if trimmed.startswith("#") and not trimmed.startswith("#!"):
                    continue
                if is_suppressed_inline(line):
                    continue

                for command_re, source_re, rule in _UNSOURCED_CHECKS:
                    if command_re.search(line) and not source_re.search(line):
                        emit(rule, file, line_num, line)

                if _RE_LATEST.search(line):
                    emit(_F2_UNPINNED, file, line_num, line)

                registry = _RE_REGISTRY_URL.search(line)
                if registry:
                    url = registry.group(1)
                    if not _host_allowed(url, allowed):
                        emit(
                            _F3_REGISTRY,
                            file,
                            line_num,
                            line,
                            message=f"Registry URL not in allowlist: {url}",
                        )

        return ScanResult(
            scanner_name=_SCANNER_NAME,
            findings=findings,
            files_scanned=len(files),
            duration_ms=int((time.monotonic() - start) * 1000),
        )


def rules() -> list[RuleInfo]:
    """Return metadata for every package install rule."""
    return [
        RuleInfo(
            id=rule_id,
            severity="warning",
            scanner=_SCANNER_NAME,
            message=message,
            remediation=remediation,
        )
        for rule_id, message, remediation in (
            _F1_NPM,
            _F1_BUN,
            _F1_PIP,
            _F1_YARN,
            _F1_PNPM,
            _F2_UNPINNED,
            _F3_REGISTRY,
        )
    ]