[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tourskills"
version = "0.1.0"
description = "Behavior-tree skills for a tour-guide robot: going to a point of interest, motor faults, touch detection and localization health."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "robotics",
    "behavior-tree",
    "skills",
    "localization",
    "fault-detection",
    "tour-guide",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tourskills"]

[tool.hatch.build.targets.sdist]
include = ["tourskills", "tests", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
