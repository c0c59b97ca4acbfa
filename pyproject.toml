[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zeitgeist"
version = "0.5.0"
description = "A language-agnostic dependency checker, with a companion tool for inspecting go.mod dependencies"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
    "semver",
]
keywords = ["dependencies", "versions", "semver", "release", "go.mod"]
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
test = [
    "pytest",
]

[project.scripts]
zeitgeist = "zeitgeist.cli:main"
buoy = "zeitgeist.buoy.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["zeitgeist"]

[tool.pytest.ini_options]
addopts = "-ra"
