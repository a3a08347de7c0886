"""
OAuth Package
"""
