[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gpthome"
version = "1.0.0"
description = "A chat assistant that controls Home Assistant devices through a small HTTP API"
requires-python = ">=3.10"
keywords = ["home-assistant", "smart-home", "chat", "assistant", "home-automation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
]
dependencies = [
    "flask",
    "requests",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
gpthome = "gpthome.main:main"

[tool.hatch.build.targets.wheel]
packages = ["gpthome"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
