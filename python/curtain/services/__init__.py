"""Service layer for Curtain.

All visibility business logic lives here. Routes call exactly one service
function and never touch the database directly.
"""
