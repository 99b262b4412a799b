"""
Core configuration and exceptions
"""
