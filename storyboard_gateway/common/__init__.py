"""
Common Utilities Package

Errors, request context and helpers shared by every layer.
"""
