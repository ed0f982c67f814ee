[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sloop"
version = "0.1.0"
description = "Kubernetes history building blocks: watch-payload extraction, event counting, timeline rows, query filters and configuration"
requires-python = ">=3.11"
dependencies = [
    "pyyaml",
]
keywords = ["kubernetes", "monitoring", "events", "timeline", "history"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["sloop"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
