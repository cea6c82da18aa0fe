"""Runnable backend applications."""
