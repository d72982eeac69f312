"""
wirefly: pulse-coupled tick synchronization over publish/subscribe

Peers on a shared topic converge on a common tick rhythm purely by
hearing each other tick, the way fireflies fall into step:

- every peer ticks on a fixed cycle of subticks
- hearing another peer tick pushes the local phase forward in
  proportion to how far through the cycle it already is
- repeated over many cycles, the peers' ticks line up
"""

__version__ = "0.1.0"
