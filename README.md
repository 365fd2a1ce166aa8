# skillaudit

Security scanners for AI agent skill directories (folders holding a
`SKILL.md` or `AGENT.md` plus helper scripts). Each scanner walks a
directory, reads the files it cares about and returns a `ScanResult` holding
a list of `Finding` objects.

## Scanners

Built in, no external tools needed:

- `skillaudit.package_install.PackageInstallScanner` checks shell scripts
  (`*.sh`, `*.bash`, `*.zsh`) for `npm`, `bun`, `yarn` and `pnpm` installs
  without `--registry`, `pip`/`pip3` installs without `--index-url` or `-i`,
  `@latest` versions, and `--registry` URLs whose host is not in the
  registry allowlist. Every finding is a warning. Comment lines (other than
  a `#!` line) are skipped.

Wrappers around external tools, usable only when the tool is on `PATH`:

- `skillaudit.shellcheck.ShellCheckScanner` runs
  `shellcheck -f json --severity=style` over `*.sh` and `*.bash` files, in
  batches of 50. Each finding links to the ShellCheck wiki page for its code.
- `skillaudit.secrets.SecretsScanner` runs `gitleaks detect --no-git` and
  reports every leak as an error. Matched values are masked with
  `skillaudit.secrets.redact_secret` before they reach a finding.
- `skillaudit.semgrep.SemgrepScanner` runs `semgrep scan --json --quiet`.
  It uses `SemgrepConfig.config` when that is a registry shorthand (`p/...`,
  `r/...`, `auto`), a URL or an existing path, and otherwise falls back to a
  `semgrep.yml` or `.semgrep.yml` in the current directory. Metrics and the
  version check are off unless `SemgrepConfig.metrics` or
  `SemgrepConfig.version_check` is set.

Call `is_available()` before `scan()` on the external scanners.

## Usage

```python
from pathlib import Path

from skillaudit.core import AllowlistConfig, Config
from skillaudit.package_install import PackageInstallScanner
from skillaudit.shellcheck import ShellCheckScanner

config = Config(allowlist=AllowlistConfig(registries=["registry.npmjs.org"]))
for scanner in (PackageInstallScanner(), ShellCheckScanner()):
    if not scanner.is_available():
        continue
    result = scanner.scan(Path("my-skill"), config)
    if result.skipped:
        print(scanner.name, "skipped:", result.skip_reason)
    for finding in result.findings:
        print(finding.severity.value, finding.rule_id, finding.file, finding.line)
        print("   ", finding.message)
```

Every scanner module also has a `rules()` function listing the rules it
reports, each as a `RuleInfo` with an id, severity, scanner, message and
remediation. For the external tools this is a representative subset; at run
time rule ids come from the tool's own output (`shellcheck/SC2086`,
`secrets/<RuleID>`, `semgrep/<check_id>`).

## Registry allowlist

`Config.allowlist` is an `AllowlistConfig` with `domains` and `registries`;
entries are stripped and lower-cased. `PackageInstallScanner` compares the
host of each `--registry` URL with `registries`: a host matches an entry when
it is equal to it or is a subdomain of it, so `npm.registry.npmjs.org`
matches `registry.npmjs.org` but `evilregistry.npmjs.org.example.com` does
not.

## Suppressing a line

Shell lines ending in `# audit:ignore`, `# scan:ignore` or
`# oxidized-agentic-audit:ignore` are skipped (`skillaudit.core.is_suppressed_inline`).
The marker only counts at the end of the line.

## Helpers in `skillaudit.core`

- `collect_files(path, extensions)` returns the sorted regular files under a
  directory with one of the given extensions; symlinks are neither followed
  nor returned.
- `read_file_limited(path)` reads a regular UTF-8 file of at most 10 MB and
  raises `FileReadError` otherwise.
- `which_exists(cmd)` tells whether an executable is on `PATH`.
- `run_with_timeout(args, timeout, scanner_name, start, env)` runs a tool and
  raises `ScanAborted`, carrying a ready `ScanResult`, when it times out or
  cannot be started. External tools get 60 seconds, semgrep 30; a timed-out
  scan is reported as skipped.

## What this package does not do

It has no command-line program, no prompt-injection or TypeScript/JavaScript
scanner, and no combined report, scoring or output formatting: each scanner
is called from Python and returns its own `ScanResult`. The
`AllowlistConfig.domains` list is carried in the configuration but no scanner
here consults it.

## Tests

Install the `test` extra and run `pytest` from the project root.