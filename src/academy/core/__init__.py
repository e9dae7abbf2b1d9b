"""
Core module - Configuration, database, storage errors, security, and email.
"""
