#!/usr/bin/env python
"""
Setup script for pysofa package.

This is a minimal setup.py for backward compatibility.
The main configuration is in pyproject.toml.
"""

from setuptools import setup

# Configuration is in pyproject.toml
setup()
