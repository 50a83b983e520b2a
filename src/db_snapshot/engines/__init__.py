"""Engine variants (PostgreSQL, Oracle) and their capability contracts.

Select implementations through ``db_snapshot.engines.factory``.
"""
