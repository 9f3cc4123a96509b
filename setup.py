"""
Setup script for PDF Transcoder.

This script configures the package for installation via pip.
Supports both development and production installations.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README for long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="pdf-transcoder",
    version="1.0.0",
    description="Raster-backed PDF merge, split, compress and conversion pipeline with CLI and HTTP API",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="PDF Transcoder Contributors",
    author_email="",
    packages=find_packages(include=["pdf_transcoder", "pdf_transcoder.*"]),
    install_requires=[
        "pypdf>=3.17.0",
        "pypdfium2>=4.20.0",
        "PyMuPDF>=1.24.3",
        "Pillow>=10.0.0",
        "reportlab>=4.0.0",
        "python-docx>=1.0.0",
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "api": [
            "fastapi>=0.110.0",
            "python-multipart>=0.0.9",
            "uvicorn>=0.27.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "httpx>=0.27.0",
            "fastapi>=0.110.0",
            "python-multipart>=0.0.9",
        ],
    },
    entry_points={
        "console_scripts": [
            "pdf-transcoder=pdf_transcoder.cli:cli",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Intended Audience :: Developers",
        "Topic :: Office/Business",
        "Topic :: Utilities",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Operating System :: OS Independent",
        "Environment :: Console",
    ],
    keywords="pdf merge split compress convert rasterize images text docx cli",
    license="MIT",
    include_package_data=True,
    zip_safe=False,
)
