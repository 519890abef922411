[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tlschat"
version = "0.1.0"
description = "Building blocks for a TLS chat client and server with text, file and WAV audio transfer"
requires-python = ">=3.10"
dependencies = []
keywords = ["chat", "tls", "ssl", "messaging", "file-transfer", "audio", "wav"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tlschat = "tlschat.client:main"

[tool.hatch.build.targets.wheel]
packages = ["tlschat"]

[tool.pytest.ini_options]
addopts = "-ra"
