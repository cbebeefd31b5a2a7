"""Core domain logic for protocol adherence and biometric monitoring.

This package contains the business logic and domain models,
isolated from external dependencies for easy testing and reasoning.
"""
