"""Capability modules loaded on demand by the ModuleLoader."""
