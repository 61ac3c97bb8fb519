[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zendns"
version = "0.2.0"
description = "A blocking DNS forwarder serving plain UDP, DNS-over-TLS and DNS-over-HTTP"
requires-python = ">=3.11"
keywords = ["dns", "blocklist", "ad-blocking", "dns-over-tls", "dns-over-http", "forwarder"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Name Service (DNS)",
]
dependencies = [
    "dnspython>=2.4",
    "aiohttp>=3.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[project.scripts]
zendns = "zendns.server:main"

[tool.hatch.build.targets.wheel]
packages = ["zendns"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
ignore_missing_imports = true
