"""
Core package for shared utilities.

Configuration, structured logging and admin security helpers shared by the
API layer and the progress services.
"""
