"""Domain Events.
"""
