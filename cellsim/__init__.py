"""
Cellsim: evolving cells on a toroidal plane

Cells run evolvable stack-machine programs that decide how they connect,
signal, repel, divide and die. A force model moves them; the interaction
graph records who is connected to whom.

Architecture: the interaction graph is the source of truth. Renderers are consumers.
"""

__version__ = "0.1.0"
