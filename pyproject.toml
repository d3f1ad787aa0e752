[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pbench"
version = "0.1.0"
description = "Library for Presto benchmarking: decimal rounding of result files, TPC-DS DDL generation and structured JSON logging"
requires-python = ">=3.10"
dependencies = [
    "jinja2",
]
keywords = ["presto", "benchmark", "sql", "ddl", "tpc-ds", "logging"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["pbench"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
