"""Concrete entity store backends."""
