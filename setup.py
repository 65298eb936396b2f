"""
filerepo - Setup Configuration

A directory tree exposed as a repository of resources, with root-confined
paths, recursive copy/delete and zip archives.

License: MIT
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Core dependencies
core_deps = [
    "pydantic>=2.11.9",  # Wire representation of resource snapshots
    "pyyaml>=6.0.2",     # Configuration files
    "click>=8.1.7",      # Command line interface
]

# Development dependencies
dev_deps = [
    # Testing
    "pytest>=8.4.1",
    "pytest-cov>=6.2.1",
]

setup(
    name="filerepo",
    version="0.1.0",

    # Package description
    description="A directory tree exposed as a repository of resources",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.11",

    # Dependencies
    install_requires=core_deps,

    # Optional dependencies (extras)
    extras_require={
        # Development: testing
        "dev": dev_deps,
        "test": dev_deps,
    },

    # PyPI classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: System :: Filesystems",
        "Topic :: System :: Archiving :: Compression",
    ],

    keywords=["filesystem", "repository", "zip", "archive", "sandbox"],

    license="MIT",

    # Package data
    include_package_data=True,
    zip_safe=False,

    # Entry points
    entry_points={
        "console_scripts": [
            "filerepo=filerepo.cli:main",
        ],
    },
)
