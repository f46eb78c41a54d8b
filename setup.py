"""
RailYard - Visual Rails Data-Model Composer
Install: pip install -e ".[dev]"
"""

from pathlib import Path

from setuptools import find_packages, setup

README = Path(__file__).with_name("README.md").read_text(encoding="utf-8")

setup(
    name="railyard",
    version="1.0.0",
    author="RailYard Team",
    description="Compose Rails data models, validate them, and scaffold the app",
    long_description=README,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.20.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0", "httpx>=0.24.0", "black>=23.0", "ruff>=0.1.0"],
    },
    entry_points={"console_scripts": ["railyard=railyard.cli:cli_main"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Code Generators",
        "Programming Language :: Python :: 3",
        "Framework :: FastAPI",
    ],
    keywords="rails, scaffolding, schema, generator, data-model, fastapi",
)
