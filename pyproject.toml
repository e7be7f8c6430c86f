[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "apitap"
version = "0.1.0"
description = "Building blocks for HTTP-to-warehouse ETL: paginated JSON fetching, SQL module templating and logging setup"
requires-python = ">=3.10"
keywords = ["etl", "http", "pagination", "ndjson", "json-pointer", "sql", "templates", "pipeline"]
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
    "Framework :: AsyncIO",
    "Topic :: Database",
    "Topic :: Internet :: WWW/HTTP",
]
dependencies = [
    "httpx>=0.25",
    "jinja2>=3.1",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
    "pyyaml>=6.0",
]

[tool.hatch.build.targets.wheel]
packages = ["apitap"]

[tool.hatch.build.targets.sdist]
include = ["apitap", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
