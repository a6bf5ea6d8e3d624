# posting/__init__.py
"""
Posting app - daily aggregation of sales into balanced GL journals.

summary -> policy -> journal -> transaction store CREATE
"""
