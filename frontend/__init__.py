"""
Environment configuration shared with the browser client bundle.
"""
