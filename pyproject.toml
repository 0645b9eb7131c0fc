[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ocirt"
version = "0.1.0"
description = "Building blocks for an OCI container runtime on Linux: specs, state, namespaces, hooks, devices, rootless id mappings and process channels"
requires-python = ">=3.12"
dependencies = []
keywords = ["oci", "container", "runtime", "namespaces", "linux", "rootless"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels :: Linux",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ocirt"]

[tool.hatch.build.targets.sdist]
include = ["ocirt", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
