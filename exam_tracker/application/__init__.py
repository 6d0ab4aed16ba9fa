"""
Application layer.

Service orchestrators exposed to views.
"""
