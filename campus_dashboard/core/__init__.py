"""Core application utilities.

This package contains non-UI foundations shared across the app:
- logging setup
- severity taxonomy and the pipeline's data model
- platform failure hooks
- app context (page + config + log store + dispatcher)
- safe wrappers for callbacks
"""
