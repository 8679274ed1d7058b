[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "astcli"
version = "2.0.0rc2"
description = "Click commands and output helpers for managing projects, results, query repositories, SAST resources, scan metadata, logs and health checks of an application security testing platform"
requires-python = ">=3.10"
dependencies = [
    "click",
    "tqdm",
]
keywords = ["security", "sast", "scanning", "cli", "click", "static-analysis"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["astcli"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
