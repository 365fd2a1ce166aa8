from pathlib import Path

import pytest

from skillaudit.core import AllowlistConfig, Config, Severity
from skillaudit.package_install import PackageInstallScanner, rules


def _scan(tmp_path: Path, script: str, config: Config | None = None, name: str = "install.sh"):
    (tmp_path / name).write_text(script, encoding="utf-8")
    return PackageInstallScanner().scan(tmp_path, config or Config())


def _ids(result):
    return [f.rule_id for f in result.findings]


@pytest.mark.parametrize(
    "line, rule_id",
    [
        ("npm install lodash", "pkg/F1-npm"),
        ("NPM I lodash", "pkg/F1-npm"),
        ("bun add zod", "pkg/F1-bun"),
        ("pip install requests", "pkg/F1-pip"),
        ("pip3 install requests", "pkg/F1-pip"),
        ("yarn add react", "pkg/F1-yarn"),
        ("pnpm install", "pkg/F1-pnpm"),
    ],
)
def test_installs_without_source_are_flagged(tmp_path, line, rule_id):
    result = _scan(tmp_path, f"#!/bin/sh\n{line}\n")
    assert rule_id in _ids(result)
    finding = next(f for f in result.findings if f.rule_id == rule_id)
    assert finding.severity == Severity.WARNING
    assert finding.scanner == "package_install"
    assert finding.line == 2
    assert finding.snippet == line


def test_registry_flag_silences_f1_but_checks_allowlist(tmp_path):
    result = _scan(tmp_path, "npm install --registry https://registry.npmjs.org lodash\n")
    assert "pkg/F1-npm" not in _ids(result)
    assert _ids(result) == ["pkg/F3-registry"]
    assert result.findings[0].message == (
        "Registry URL not in allowlist: https://registry.npmjs.org"
    )


def test_registry_with_equals_sign(tmp_path):
    config = Config(allowlist=AllowlistConfig(registries=["registry.npmjs.org"]))
    result = _scan(tmp_path, "npm install --registry=https://registry.npmjs.org lodash\n", config)
    assert result.findings == []


def test_allowlisted_registry_and_subdomain_pass(tmp_path):
    config = Config(allowlist=AllowlistConfig(registries=["Registry.NPMJS.org"]))
    result = _scan(
        tmp_path,
        "npm install --registry https://registry.npmjs.org a\n"
        "npm install --registry https://mirror.registry.npmjs.org b\n",
        config,
    )
    assert result.findings == []


@pytest.mark.parametrize(
    "url",
    [
        "https://evil.com/registry.npmjs.org/",
        "https://evilregistry.npmjs.org",
        "https://registry.npmjs.org.evil.com",
    ],
)
def test_spoofed_registry_is_flagged(tmp_path, url):
    config = Config(allowlist=AllowlistConfig(registries=["registry.npmjs.org"]))
    result = _scan(tmp_path, f"npm install --registry {url} lodash\n", config)
    assert _ids(result) == ["pkg/F3-registry"]


def test_pip_index_url_silences_f1(tmp_path):
    result = _scan(
        tmp_path,
        "pip install --index-url https://pypi.org/simple/ requests\n"
        "pip install -i https://pypi.org/simple/ flask\n",
    )
    assert "pkg/F1-pip" not in _ids(result)


def test_latest_is_unpinned(tmp_path):
    result = _scan(tmp_path, "npm install --registry https://r.example.com left-pad@latest\n",
                   Config(allowlist=AllowlistConfig(registries=["r.example.com"])))
    assert _ids(result) == ["pkg/F2-unpinned"]


def test_comments_and_suppressions_are_skipped(tmp_path):
    result = _scan(
        tmp_path,
        "# npm install lodash\n"
        "   # pip install requests\n"
        "npm install lodash # audit:ignore\n"
        "yarn add react # scan:ignore\n",
    )
    assert result.findings == []


def test_shebang_line_is_not_treated_as_comment(tmp_path):
    result = _scan(tmp_path, "#!/usr/bin/env npm install x\n")
    assert _ids(result) == ["pkg/F1-npm"]


def test_only_shell_files_are_scanned(tmp_path):
    (tmp_path / "notes.md").write_text("npm install lodash\n", encoding="utf-8")
    (tmp_path / "setup.zsh").write_text("echo hi\n", encoding="utf-8")
    (tmp_path / "run.bash").write_text("echo hi\n", encoding="utf-8")
    result = PackageInstallScanner().scan(tmp_path, Config())
    assert result.findings == []
    assert result.files_scanned == 2
    assert result.skipped is False
    assert result.error is None


def test_unreadable_file_is_ignored(tmp_path):
    (tmp_path / "bad.sh").write_bytes(b"\xff\xfe npm install x\n")
    result = PackageInstallScanner().scan(tmp_path, Config())
    assert result.findings == []
    assert result.files_scanned == 1


def test_long_snippet_is_truncated(tmp_path):
    line = "npm install " + "a" * 200
    result = _scan(tmp_path, line + "\n")
    snippet = result.findings[0].snippet
    assert snippet.endswith("...")
    assert snippet[:-3] == line[: len(snippet) - 3]
    assert len(snippet) < len(line)


def test_crlf_line_endings(tmp_path):
    result = _scan(tmp_path, "echo ok\r\nnpm install lodash\r\n")
    assert result.findings[0].line == 2
    assert result.findings[0].snippet == "npm install lodash"


def test_rules_cover_emitted_ids(tmp_path):
    catalogue = rules()
    ids = {rule.id for rule in catalogue}
    assert len(ids) == len(catalogue)
    assert all(rule.scanner == "package_install" for rule in catalogue)
    assert all(rule.severity == "warning" for rule in catalogue)
    result = _scan(
        tmp_path,
        "npm install a@latest\nbun add b\npip install c\nyarn add d\npnpm add e\n"
        "npm install --registry https://x.example.com f\n",
    )
    assert set(_ids(result)) == ids