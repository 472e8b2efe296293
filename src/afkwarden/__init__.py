"""afkwarden - Automated occupant supervisor for multiplayer game servers.

This package keeps exactly one automated occupant session alive on a remote
game server, replaces it when it goes silent or is lost, rotates its identity
over time and vacates whenever a human occupant shows up.
"""

__version__ = "0.1.0"
