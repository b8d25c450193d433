[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "carnivalkit"
version = "0.1.0"
description = "Build manifests, delta updates, integrity checks and game launching for IndieGala game installs"
requires-python = ">=3.10"
dependencies = []
keywords = ["games", "indiegala", "manifest", "launcher", "wine", "verification"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["carnivalkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
