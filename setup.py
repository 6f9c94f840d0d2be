from setuptools import setup, find_packages
import os

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

version = os.environ.get("AVROKIT_VERSION", "0.1.0")

setup(
    name="avrokit",
    version=version,
    author="avrokit contributors",
    description="avrokit - Avro binary encoding, schemas and object container files for Python",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/avrokit/avrokit",
    project_urls={
        "Source": "https://github.com/avrokit/avrokit",
        "Issue Tracker": "https://github.com/avrokit/avrokit/issues",
    },
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*", "docs"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Archiving :: Compression",
        "Typing :: Typed",
    ],
    keywords=[
        "avro",
        "serialization",
        "binary",
        "schema",
        "codec",
        "container",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-timeout>=2.0.0",
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
            "flake8>=6.0.0",
        ],
        "docs": [
            "sphinx>=6.0.0",
            "sphinx-rtd-theme>=1.2.0",
            "sphinx-autodoc-typehints>=1.22.0",
        ],
    },
    package_data={
        "avrokit": ["py.typed"],
    },
    include_package_data=True,
    zip_safe=False,
)
