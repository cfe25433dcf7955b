[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vegatools"
version = "0.1.0"
description = "Building blocks for exercising and watching a trading network: load generation, event streaming, market depth, stake and liquidity views, withdrawal bundles."
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "trading",
    "market-depth",
    "liquidity",
    "load-testing",
    "event-stream",
    "withdrawals",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Topic :: Software Development :: Testing :: Traffic Generation",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["vegatools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
