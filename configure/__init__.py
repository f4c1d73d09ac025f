# configure/__init__.py
# -*- coding: utf-8 -*-
"""
Configurators: crontab registration, env files and the compose stack.
"""
