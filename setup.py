#!/usr/bin/env python3
"""
Setup script for normals2d (PCA normal estimation for 2-D point clouds).

Optional extras:
- faiss: FAISS flat-L2 kNN backend for large clouds (pip install .[faiss])
- test:  pytest for the test suite (pip install .[test])
"""

from pathlib import Path
from setuptools import setup, find_packages

project_root = Path(__file__).parent

setup(
    name="normals2d",
    version="1.0.0",
    author="Changyong Song",
    description="Weighted-PCA normal estimation and orientation refinement for 2-D point clouds",
    long_description=(project_root / "README.md").read_text(encoding="utf-8") if (project_root / "README.md").exists() else "",
    packages=find_packages(include=["normals2d", "normals2d.*"]),
    py_modules=["run"],
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=["numpy", "torch", "pyyaml", "matplotlib"],
    extras_require={
        "faiss": ["faiss-cpu"],
        "test": ["pytest"],
    },
)
