"""Store access for the dashboard, one module per resource.

Every function takes an ``asyncpg.Pool`` as its first argument and returns
plain dicts keyed by column name.
"""
