"""API package - HTTP client and error types"""
