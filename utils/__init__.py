"""Shared helpers for the vbht tools."""
