"""
Alignzo Backend API package.
"""
