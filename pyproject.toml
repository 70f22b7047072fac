[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dualink"
version = "0.10.0"
description = "Software KVM service components: client registry, network event protocol, frontend IPC and clipboard sync"
requires-python = ">=3.10"
dependencies = []
keywords = ["kvm", "mouse", "keyboard", "input-sharing", "clipboard", "ipc"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
dualink-cli = "dualink.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dualink"]

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
