"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the toolkit to the outside world (HTTP endpoint, file system,
console) by implementing the interfaces defined in the domain layer.
"""
