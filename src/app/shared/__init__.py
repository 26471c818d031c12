"""
Shared infrastructure: configuration-aware logging, database sessions,
correlation IDs and domain exceptions.
"""
