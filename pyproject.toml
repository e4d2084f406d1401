[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flightcomputer"
version = "0.1.0"
description = "Model-rocket flight computer logic: sensor filtering, flight-phase detection, telemetry packets and buzzer melodies"
requires-python = ">=3.10"
dependencies = []
keywords = ["rocketry", "kalman-filter", "flight-computer", "telemetry", "apogee-detection", "ekf"]
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
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["flightcomputer"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
