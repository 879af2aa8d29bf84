# File: app/db/__init__.py
"""
Database package for ContactHub: models, session handling and schema setup.
"""
