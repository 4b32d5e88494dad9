[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "jmapmail"
version = "0.1.0"
description = "A JMAP mail client library: mailboxes, identities, messages, drafts, sending, forwarding, masked emails and quotas."
requires-python = ">=3.10"
dependencies = []
keywords = ["jmap", "email", "mail", "client", "masked-email", "quota"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Email :: Email Clients (MUA)",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["jmapmail"]

[tool.hatch.build.targets.sdist]
include = ["jmapmail", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
