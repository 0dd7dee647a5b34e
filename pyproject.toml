[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nodolink"
version = "0.1.0"
description = "Klik-Aan-Klik-Uit signal coding, Nodo configuration reading and small DNS/DHCP clients over UDP"
requires-python = ">=3.10"
dependencies = []
keywords = ["home automation", "kaku", "nodo", "dhcp", "dns", "udp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nodolink"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
