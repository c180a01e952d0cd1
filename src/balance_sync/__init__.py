"""Crypto account linking and balance synchronization."""
