"""
Command line tools for zipseek.
"""
