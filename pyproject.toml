[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pgproto"
version = "0.1.0"
description = "Low-level building blocks of the PostgreSQL wire protocol: frontend messages, binary value formats, authentication, escaping and catalog parsing."
requires-python = ">=3.10"
dependencies = []
keywords = ["postgresql", "postgres", "protocol", "wire-protocol", "scram", "binary-format"]
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
    "Topic :: Database",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pgproto"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
