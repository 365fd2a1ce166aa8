"""Security scanners for AI agent skill directories: package installs, secrets, semgrep and ShellCheck."""

__version__ = "0.5.0"