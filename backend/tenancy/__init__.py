# tenancy/__init__.py
"""
Tenancy app - organization boundary and actor resolution.

Every store call is scoped to one organization and one actor. This app
resolves both and provides the scoping policies the stores rely on.
"""
