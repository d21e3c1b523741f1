"""
API server: HTTP surface over the analysis pipeline and the activity feed.
"""
