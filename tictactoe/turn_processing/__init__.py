"""Turn/move processing helpers.

This package centralizes move validation and the board views handed to decision
sources, so human moves and AI moves flow through the same checks.
"""
