# -*- coding: utf-8 -*-
"""
Setup Module
"""
from setuptools import find_packages, setup

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name="pyrecipe-astro",
    version="0.1.0",
    description="A recipe driven pipeline for the reduction of telescope data",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["pyrecipe", "pyrecipe.*"]),
    include_package_data=True,
    package_data={
        "pyrecipe": ["settings/*.json"],
        "pyrecipe.instruments": ["*.json", "*/rules.*"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
    ],
    python_requires=">=3.8",
    install_requires=[
        "astropy",
        "python-dateutil",
        "jsonschema>=3.0.1",
        "tqdm",
        "click",
        "colorlog",
        "py_expression_eval",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["pyrecipe=pyrecipe.__main__:main"]},
)
