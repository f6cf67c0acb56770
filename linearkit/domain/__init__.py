"""Domain Layer: errors, value objects, interfaces and events.

Has no dependency on the infrastructure or core layers.
"""
