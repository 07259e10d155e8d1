[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sfcli"
version = "0.1.0"
description = "Environment variables, Composer inspection, cloud configuration templates and book checkout tooling for Symfony projects"
requires-python = ">=3.10"
dependencies = ["pyyaml"]
keywords = ["symfony", "php", "environment", "dotenv", "composer", "cloud"]
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
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sfcli = "sfcli.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["sfcli"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
