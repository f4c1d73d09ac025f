# ddns/__init__.py
# -*- coding: utf-8 -*-
"""
DuckDNS update client run periodically from cron.
"""
