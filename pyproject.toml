[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "memgraph"
version = "1.3.0"
description = "A persistent knowledge graph of entities and relations, with an event-sourced store, snapshots and an inference engine"
requires-python = ">=3.10"
dependencies = []
keywords = ["knowledge-graph", "event-sourcing", "memory", "snapshot", "inference"]
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
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["memgraph"]

[tool.pytest.ini_options]
addopts = "-ra"
