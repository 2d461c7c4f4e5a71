[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meshadapter"
version = "0.1.0"
description = "Building blocks for runtime adapters between a model-mesh controller and MLServer or OpenVINO Model Server"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "model-serving",
    "model-mesh",
    "mlserver",
    "ovms",
    "inference",
    "adapter",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["meshadapter"]

[tool.hatch.build.targets.sdist]
include = ["meshadapter", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
