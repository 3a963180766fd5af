[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "apkit"
version = "0.1.0"
description = "Alpine APK package tooling: version parsing, dependency resolution, root configuration files and package expansion"
requires-python = ">=3.10"
keywords = ["apk", "alpine", "package", "dependency", "resolver", "version"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["apkit"]

[tool.pytest.ini_options]
addopts = "-ra"
