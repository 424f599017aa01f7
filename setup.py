#!/usr/bin/env python3
# =============================================================================
#  assert-reflect – setup.py
#
#  The version lives in assert_reflect/__init__.py; runtime requirements in
#  requirements.txt.
#
#      pip install -e ".[dev]"
#      python -m pytest
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

# ---------------------------------------------------------------------------
#  Read version from the package so we have a single source of truth.
# ---------------------------------------------------------------------------
_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from assert_reflect/__init__.py."""
    init = _HERE / "assert_reflect" / "__init__.py"
    text = init.read_text(encoding="utf-8")
    match = re.search(r'^__version__(?:\s*:\s*str)?\s*=\s*"([^"]+)"', text, re.MULTILINE)
    if match:
        return match.group(1)
    return "0.0.0"


def _read_long_description() -> str:
    """Read README.md for the long description."""
    readme = _HERE / "README.md"
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


def _read_requirements() -> list[str]:
    """Read requirements.txt if it exists."""
    req_file = _HERE / "requirements.txt"
    if req_file.exists():
        lines = req_file.read_text(encoding="utf-8").splitlines()
        return [
            ln.strip()
            for ln in lines
            if ln.strip() and not ln.strip().startswith("#")
        ]
    return []


setup(
    name="assert-reflect",
    version=_read_version(),
    description=(
        "Assertions that reconstruct their own source and report the value "
        "of every sub-expression when they fail."
    ),
    long_description=_read_long_description(),
    long_description_content_type="text/markdown",
    license="MIT",
    author="assert-reflect contributors",
    python_requires=">=3.10",
    packages=find_packages(
        include=[
            "assert_reflect",
            "assert_reflect.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    package_data={
        "assert_reflect": ["py.typed"],
    },
    install_requires=_read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "ruff>=0.4",
            "mypy>=1.10",
        ],
    },

    # ── pytest picks up the ``asserter`` fixture from here ─────────────
    entry_points={
        "pytest11": [
            "assert_reflect=assert_reflect.pytest_plugin",
        ],
    },

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Framework :: Pytest",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Quality Assurance",
        "Topic :: Software Development :: Testing",
        "Typing :: Typed",
    ],
    keywords=[
        "assertions",
        "testing",
        "reflection",
        "ast",
        "diagnostics",
    ],
    zip_safe=False,
)
