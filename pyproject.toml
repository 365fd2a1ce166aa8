[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "skillaudit"
version = "0.5.0"
description = "Security scanners for AI agent skill directories: risky package installs in shell scripts, plus gitleaks, semgrep and ShellCheck wrappers"
requires-python = ">=3.10"
dependencies = []
keywords = ["security", "audit", "llm", "skills", "agents", "supply-chain", "gitleaks", "semgrep", "shellcheck"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Information Technology",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["skillaudit"]

[tool.hatch.build.targets.sdist]
include = ["skillaudit", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
