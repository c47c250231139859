"""
Haven Pipelines.

Business logic orchestration functions.
"""
