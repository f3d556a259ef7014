[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nachoskern"
version = "0.1.0"
description = "User-program support for a teaching operating system kernel: page bitmaps, NOFF address spaces and system-call dispatch"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "teaching",
    "kernel",
    "system-calls",
    "address-space",
    "noff",
    "bitmap",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nachoskern"]

[tool.hatch.build.targets.sdist]
include = ["nachoskern", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
