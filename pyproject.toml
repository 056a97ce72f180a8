[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cqlmapx"
version = "0.1.0"
description = "Row-to-dataclass mapping and file-based schema migrations for CQL databases"
requires-python = ">=3.10"
dependencies = []
keywords = ["cql", "cassandra", "scylla", "dataclass", "mapping", "migrations"]
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
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cqlmapx"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
