"""Shared configuration, logging, persistence and messaging utilities."""
