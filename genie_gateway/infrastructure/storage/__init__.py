"""
Storage Package
"""
