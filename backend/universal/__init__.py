# universal/__init__.py
"""
Universal app - the six tables every HERA domain is built on.

This app provides:
- Organization, Entity, DynamicField, Relationship, Transaction, TransactionLine
- smart_codes: the classification/versioning validator applied to every row
- results: CommandResult and ErrorCode shared by all stores
- write_barrier: store-only write contexts
"""
