#!/usr/bin/env python3
"""
Setup script for the hub signalling client
"""

from setuptools import setup, find_packages

setup(
    name="hub-signal",
    version="0.0.1",
    description="Client for the hub signalling protocol (address binding, register/lookup, peer forwarding)",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "websockets>=15.0",
        "click>=8.1.7",
        "typer>=0.12.3",
        "rich>=13.9.2",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.2",
            "pytest-asyncio>=1.2.0",
        ],
    },
    python_requires=">=3.9",
    entry_points={
        'console_scripts': [
            'hub-client=client.hub_cli:main',
        ],
    },
)
