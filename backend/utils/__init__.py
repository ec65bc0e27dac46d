"""
Configuration, error types and response cleaning.
"""
