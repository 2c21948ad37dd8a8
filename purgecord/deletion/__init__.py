"""
Deletion engine, filtering, and batch processing.
"""
