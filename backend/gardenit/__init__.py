"""Gardenit backend."""
