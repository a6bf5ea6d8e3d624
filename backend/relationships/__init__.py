# relationships/__init__.py
"""
Relationships app - typed, closeable edges and the status workflow.
"""
