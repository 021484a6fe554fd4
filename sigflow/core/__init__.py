"""
Core configuration package.
"""
