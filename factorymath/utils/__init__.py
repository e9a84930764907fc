"""
Utility helpers for factorymath.
"""
