# entities/__init__.py
"""
Entities app - CRUD over entities and their typed dynamic fields.

Commands handle all mutations, validating smart codes and organization
scope before anything is written.
"""
