"""
lopen-memory: persistent project memory for coding agents

A local record of work breakdown (projects, modules, features, tasks)
plus research that can be linked anywhere in that hierarchy.
"""

__version__ = "0.1.0"
