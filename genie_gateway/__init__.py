"""
Market Genie integration gateway.
"""
__version__ = "1.0.0"
