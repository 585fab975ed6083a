#!/usr/bin/env python
"""Setup configuration for HL7 Message Tree."""

from setuptools import find_packages, setup

setup(
    name="hl7-message-tree",
    version="1.0.0",
    description="HL7 v2 message parsing, editing, comparison and acknowledgment",
    packages=find_packages(include=["src", "src.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "structlog>=23.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
)
