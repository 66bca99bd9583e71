"""Formatting and parsing helpers shared by the front ends."""
