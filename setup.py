#!/usr/bin/env python3
"""
Setup configuration for ektobot
Republishes Creative Commons albums from Ektoplazm as YouTube videos and playlists
"""

from pathlib import Path

from setuptools import setup, find_packages

# Read README for long description, if present
readme = Path(__file__).parent / "README.md"
long_description = readme.read_text(encoding="utf-8") if readme.exists() else ""

# Core requirements (always installed)
core_requirements = [
    "yt-dlp>=2023.12.30",
    "mutagen>=1.47.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "pyyaml>=6.0.1",
    "requests>=2.31.0",
    "tqdm>=4.66.1",
    "google-api-python-client>=2.100.0",
    "google-auth>=2.23.0",
    "google-auth-oauthlib>=1.1.0",
]

setup(
    name="ektobot",
    version="0.1.0",
    author="ektobot",
    description="Republish Creative Commons albums as YouTube videos and playlists",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["ektobot", "ektobot.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Multimedia :: Video :: Conversion",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
        ],
    },
    entry_points={
        "console_scripts": [
            "ektobot=ektobot.cli:main",
        ],
    },
    keywords="ektoplazm youtube music creative-commons ffmpeg cli",
)
