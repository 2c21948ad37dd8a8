"""
Search and pagination over the message search index.
"""
