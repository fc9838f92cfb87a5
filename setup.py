#!/usr/bin/env python
"""Setup script for the Vet Clinic Backup Service."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="vetclinic-backup",
    version="0.1.0",
    author="Vet Clinic Project",
    description="Scheduled MongoDB dump archives, JSON snapshots and restore API for the vet clinic application",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where=".", include=["vetbackup*"]),
    package_dir={"": "."},
    python_requires=">=3.10",
    install_requires=[
        # Web Server
        "uvicorn>=0.23.0",
        "fastapi>=0.100.0",

        # Database
        "pymongo>=4.4.0",

        # Scheduling
        "apscheduler>=3.10.0,<4.0.0",

        # Utilities
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "aiofiles>=23.0.0",
        "typing-extensions>=4.7.0",

        # Logging and Monitoring
        "structlog>=23.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.0",
            "pytest-timeout>=2.1.0",
            "httpx>=0.24.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
            "isort>=5.12.0",
        ],
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.0",
            "pytest-timeout>=2.1.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vetbackup-server=run_api:main",
            "vetbackup-admin=vetbackup.cli:main",
        ],
    },
    py_modules=["run_api"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: System :: Archiving :: Backup",
    ],
    keywords="mongodb backup restore snapshot fastapi",
)
