#!/usr/bin/env python3
"""
Setup script for School Info Hub

Install with:
    pip install -e .

With test tooling:
    pip install -e ".[test]"
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

# API server dependencies
server_requirements = [
    "fastapi>=0.110.0",
    "uvicorn[standard]>=0.27.0",
    "sqlalchemy[asyncio]>=2.0.25",
    "asyncpg>=0.29.0",
    "aiosqlite>=0.19.0",
    "pydantic>=2.5.0",
    "pydantic-settings>=2.1.0",
    "email-validator>=2.1.0",
    "python-jose[cryptography]>=3.3.0",
    "bcrypt>=4.1.0",
    "slowapi>=0.1.9",
    "limits>=3.7.0",
    "redis>=5.0.0",
    "aiosmtplib>=3.0.0",
    "beautifulsoup4>=4.12.0",
    "aiofiles>=23.2.1",
    "python-multipart>=0.0.9",
    "google-auth>=2.27.0",
    "requests>=2.31.0",
]

# Diagnostics CLI dependencies
cli_requirements = [
    "httpx>=0.26.0",
    "rich>=13.7.0",
]

setup(
    name="school-info-hub",
    version="1.0.0",
    description="School Info Hub - announcements, events, resources and family communications",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="School Info Hub Team",
    license="MIT",
    package_dir={"": "backend"},
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=server_requirements + cli_requirements,
    extras_require={
        "cli": cli_requirements,
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "faker>=22.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "infohub-server=infohub.main:run",
            "infohub-health=infohub.diagnostics.health_check:main",
            "infohub-api-suite=infohub.diagnostics.api_suite:main",
            "infohub-bench=infohub.diagnostics.benchmark:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="school portal announcements events fastapi",
)
