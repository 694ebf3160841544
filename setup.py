"""
Setup configuration for DOCBRIDGE package.
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="docbridge",
    version="0.1.0",
    description="Provider-agnostic document data access for Firestore and MongoDB",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["docbridge", "docbridge.*"]),
    python_requires=">=3.10",
    install_requires=[
        "motor>=3.0.0",
        "pymongo>=4.0.0",
        "pydantic>=2.0.0",
        "python-dateutil>=2.8.0",
        "google-cloud-firestore>=2.11.0",  # FieldFilter and count() aggregation
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="firestore mongodb document database abstraction",
    include_package_data=True,
)
