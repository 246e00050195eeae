[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "svgbench"
version = "0.1.0"
description = "Regression testing, statistics and documentation tools for SVG cleaning programs"
requires-python = ">=3.10"
dependencies = []
keywords = ["svg", "regression", "benchmark", "image-diff", "documentation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
    "Topic :: Multimedia :: Graphics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
svgbench-docgen = "svgbench.docgen:main"
svgbench-regression = "svgbench.regression:main"
svgbench-stats = "svgbench.stats:main"

[tool.hatch.build.targets.wheel]
packages = ["svgbench"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
