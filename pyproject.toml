[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "elemental"
version = "0.1.0"
description = "Disk partitioning helpers and installation configuration types for immutable OS installs"
requires-python = ">=3.10"
keywords = ["partitioning", "parted", "mkfs", "installer", "disk", "image"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Installation/Setup",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["elemental"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
