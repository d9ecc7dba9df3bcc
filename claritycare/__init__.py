"""Core domain logic for the ClarityCare health-insurance navigator.

This package contains the derivation rules and domain models,
isolated from any UI framework for easy testing and reasoning.
"""
