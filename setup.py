"""
Video Transcript Indexer — build script.

Usage:
    # Development (editable install):
    pip install -e .

    # Tests:
    python3 -m unittest discover tests

Installs the `vidindex` console command (see main.py).
"""

from setuptools import setup

APP_NAME = "vidindex"

setup(
    name=APP_NAME,
    version="1.0.0",
    description="Transcribe videos to WebVTT and index them for semantic search",
    packages=[
        "vidindex",
        "vidindex.core",
    ],
    py_modules=["main"],
    install_requires=[
        "requests>=2.28.0",
        "openai>=1.0.0",
        "python-dotenv>=1.0.0",
    ],
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "vidindex=main:main",
        ],
    },
)
