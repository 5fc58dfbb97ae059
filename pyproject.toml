[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "npusched"
version = "0.1.0"
description = "Heuristic schedulers for batching user inference requests onto memory-limited NPUs, with a self-assessment report"
requires-python = ">=3.10"
dependencies = []
keywords = ["scheduling", "npu", "heuristics", "batching", "optimization"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
npusched = "npusched.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["npusched"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
