"""
meetslot - find the best shared meeting slot for a group of participants.
"""

__version__ = "0.1.0"
