[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ch3fs"
version = "0.1.0"
description = "A small peer-to-peer recipe store that replicates uploads across cluster members"
requires-python = ">=3.10"
dependencies = []
keywords = ["distributed", "replication", "peer-to-peer", "storage", "cluster", "sqlite"]
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
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ch3fs = "ch3fs.app:main"

[tool.hatch.build.targets.wheel]
packages = ["ch3fs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
