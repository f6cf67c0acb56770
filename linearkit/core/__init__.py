"""Core Application Layer: session tracking, module loading and batch execution.

Connects the domain layer with the infrastructure layer through interfaces.
"""
