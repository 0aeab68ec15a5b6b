"""Services package - fee, balance and listing logic"""
