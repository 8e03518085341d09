#!/usr/bin/env python3
"""
Setup configuration for the Parallel Batch File Compressor.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

# Read requirements from requirements.txt
requirements = []
if (this_directory / "requirements.txt").exists():
    requirements = (this_directory / "requirements.txt").read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

setup(
    name="parallel-batch-compressor",
    version="1.0.0",
    author="Project Think",
    author_email="",
    description="Batch file compression and decompression on a bounded pool of worker threads",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=['batch_compression*']),
    py_modules=[
        'base_classes',
        'resilience_patterns',
        'compression_configs',
        'compression_monitoring',
        'batch_file_compressor',
        'compress',
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Archiving :: Compression",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=6.0",
            "pytest-cov",
            "black",
            "flake8",
            "mypy",
        ],
        "test": [
            "pytest>=6.0",
            "pytest-cov",
        ],
    },
    entry_points={
        "console_scripts": [
            "compress-files=compress:main",
        ],
    },
    include_package_data=True,
    keywords=[
        "compression",
        "gzip",
        "lz4",
        "multithreading",
        "batch-processing",
    ],
)
