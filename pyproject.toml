[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "docstore"
version = "0.1.0"
description = "A small embedded JSON document store with a JSON query language, aggregation and a WebSocket front end"
requires-python = ">=3.10"
keywords = ["database", "document store", "json", "query", "aggregation", "websocket", "embedded", "sqlite"]
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
]
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
docstore-server = "docstore.server:main"
docstore-demo = "docstore.cli:main"
docstore-kv = "docstore.kvstore:main"
docstore-writer = "docstore.batchwriter:main"

[tool.hatch.build.targets.wheel]
packages = ["docstore"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
