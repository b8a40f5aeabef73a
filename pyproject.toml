[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spacesync"
version = "0.3.2"
description = "Change detection for mirroring a remote collaborative workspace into a local folder"
requires-python = ">=3.10"
dependencies = []
keywords = ["sync", "mirroring", "workspace", "sqlite", "files"]
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
    "Topic :: System :: Archiving :: Mirroring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["spacesync"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
