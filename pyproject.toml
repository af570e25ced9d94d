[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "phasehalo"
version = "0.1.0"
description = "Phase-space halo finding building blocks: friends-of-friends linking, halo centres and profiles, snapshot readers, boundary-group linking and TCP messaging"
requires-python = ">=3.10"
keywords = ["astronomy", "cosmology", "halo finder", "n-body", "friends-of-friends", "phase space"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Astronomy",
    "Topic :: Scientific/Engineering :: Physics",
]
dependencies = [
    "numpy",
    "scipy",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["phasehalo"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
