"""
Setup script for vstation-engine.

vstation is the assessment and progression engine behind the virtual
environmental-monitoring station. It provides:

1. Case scoring - weighted multi-criteria scores, grades and feedback
2. Career progression - levels, XP, achievements and certificates
3. Behavior analysis - error classification, heatmaps and recommendations
4. Competitions - leaderboards and reports
5. Progress sync - local autosave, remote sync and resume

The 'vstation' command exposes scoring, ranking and progress tools.
"""

from setuptools import find_packages, setup

setup(
    name="vstation-engine",
    version="1.0.0",
    description="Assessment, progression and progress-sync engine for a virtual monitoring station",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Virtual Station",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.29.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "aiosqlite>=0.19.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vstation=vstation.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="assessment scoring leaderboard achievements progress-sync education",
)
