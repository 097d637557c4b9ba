[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polite"
version = "0.1.0"
description = "Load SQLite query results into pandas DataFrames and save DataFrames to SQLite tables"
requires-python = ">=3.10"
keywords = ["dataframe", "interface", "pandas", "schema", "sqlite"]
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
    "Topic :: Database :: Front-Ends",
]
dependencies = [
    "pandas",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["polite"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
