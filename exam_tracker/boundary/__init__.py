"""
Boundary layer for external system integrations.

Handles all interactions with the grading backend.
"""
