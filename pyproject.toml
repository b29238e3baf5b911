[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gameuser"
version = "1.0.0"
description = "User service logic for a game server: accounts, inventory, equipment, cards, pets and monthly sign-in"
requires-python = ">=3.10"
dependencies = []
keywords = ["game", "server", "inventory", "pets", "cards", "sign-in", "csv", "bitmap"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Typing :: Typed",
    "Topic :: Games/Entertainment",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gameuser"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
