# settings/__init__.py
# -*- coding: utf-8 -*-
"""
Settings package: pydantic models and the layered configuration loader.
"""
