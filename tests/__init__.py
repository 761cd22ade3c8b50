"""
Test package marker.
"""
