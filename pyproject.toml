[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vmlbipam"
version = "0.1.0"
description = "IP address management for virtual-machine load balancers: IP pools, range allocation, pool selection and kube-vip pool conversion"
requires-python = ">=3.10"
dependencies = []
keywords = ["ipam", "load-balancer", "ip-pool", "kube-vip", "networking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["vmlbipam"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
