[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "avlstore"
version = "0.1.0"
description = "Building blocks for a persistent AVL+ tree with Merkle hashing: nodes, encoding, rebalancing, iteration and key formats"
requires-python = ">=3.10"
keywords = ["avl", "merkle", "tree", "key-value", "storage", "varint"]
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
    "Topic :: Database :: Database Engines/Servers",
    "Typing :: Typed",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["avlstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
