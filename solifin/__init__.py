"""
SOLIFIN Wallet Client
Fee resolution, balance checks and payment submission for the SOLIFIN dashboard API
"""

__version__ = "1.0.0"
