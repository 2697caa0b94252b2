"""
ntfy-watcher - Watch a feed and push new items to ntfy.

A Python application that polls a feed for its newest item and
publishes a notification to one or more ntfy endpoints.
"""

__version__ = "1.0.0"
