[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bchneutrino"
version = "0.1.0"
description = "Building blocks for a compact-filter light client: header stores, header index, block notifications and an LRU cache"
requires-python = ">=3.10"
dependencies = []
keywords = ["bitcoin-cash", "light-client", "block-headers", "compact-filters", "lru-cache"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bchneutrino"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
