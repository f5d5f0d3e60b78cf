#!/usr/bin/env python3
"""
Setup script for cladeshift package.
"""

import re
from pathlib import Path

from setuptools import find_packages, setup

# Read the README file for long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

# Read requirements from requirements.txt
requirements = []
requirements_path = this_directory / "requirements.txt"
if requirements_path.exists():
    requirements = requirements_path.read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

# Read version from the constants module without importing the package
constants = (this_directory / "cladeshift" / "core" / "constants.py").read_text()
version = re.search(r'^VERSION = "([^"]+)"', constants, re.M).group(1)

setup(
    name="cladeshift",
    version=version,
    description="Clade change detection and rarefaction-corrected resampling tests for binary traits on phylogenies",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["cladeshift", "cladeshift.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    keywords="phylogenetics ancestral-state-reconstruction comparative-methods bootstrap rarefaction",
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": ["pytest>=6.0", "pytest-cov"],
    },
    entry_points={
        "console_scripts": [
            "cladeshift=cladeshift.cli:main",
        ],
    },
    zip_safe=False,
)
