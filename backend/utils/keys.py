"""
Composite keys for tracked units.

A unit is identified by its compose project and display name, never by its
container ID, so a recreated container maps back onto the same record.
"""


def make_composite_key(project: str, name: str) -> str:
    """Build the 'project:name' key used throughout the monitor."""
    return f"{project}:{name}"
