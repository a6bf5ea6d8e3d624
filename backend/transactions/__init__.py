# transactions/__init__.py
"""
Transactions app - transaction headers and lines written as one unit.
"""
