[build-system]
requires = ["setuptools>=61.0"]
build-backend = "setuptools.build_meta"

[project]
name = "pptxcharts"
version = "0.1.0"
description = "Read, validate and refresh the charts embedded in PowerPoint (.pptx) packages"
requires-python = ">=3.10"
dependencies = []
keywords = ["pptx", "powerpoint", "ooxml", "charts", "office"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Office Suites",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools.packages.find]
include = ["pptxcharts*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
