"""Utility helpers for logging and random number generation."""
