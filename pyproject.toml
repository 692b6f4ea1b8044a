[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wahay"
version = "0.1.0"
description = "Tor discovery, control-port checks and onion-hosted meeting helpers for decentralized voice conferences"
requires-python = ">=3.10"
dependencies = []
keywords = ["tor", "onion", "mumble", "conferencing", "voip", "privacy"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Conferencing",
    "Topic :: Internet",
    "Topic :: Security",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["wahay"]

[tool.pytest.ini_options]
addopts = "-ra"
