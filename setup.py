#!/usr/bin/env python3
"""
Setup script for beatmix
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

# Read requirements
requirements_path = Path(__file__).parent / "requirements.txt"
if requirements_path.exists():
    requirements = requirements_path.read_text().splitlines()
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]
else:
    requirements = [
        'librosa>=0.10.0',
        'soundfile>=0.12.0',
        'numpy>=1.22.0',
        'scipy>=1.8.0',
    ]

setup(
    name="beatmix",
    version="1.0.0",
    description="Beat-synchronized mixing engine: tempo, beat grids and tempo-ramped transitions",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="beatmix developers",
    author_email="",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=requirements,
    extras_require={
        'dev': ['pytest>=7.0', 'pytest-cov', 'flake8', 'black'],
    },
    entry_points={
        'console_scripts': [
            'beatmix=beatmix.cli.main:main',
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Multimedia :: Sound/Audio :: Analysis",
        "Topic :: Multimedia :: Sound/Audio :: Mixers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    keywords="dj mixing audio bpm beat grid crossfade transitions",
    include_package_data=True,
    zip_safe=False,
)
