"""
Signal rules core.

Condition trees (AND/OR groups of THRESHOLD, CROSS, PRICE and POSITION
leaves), their immutable editor and validator, and the engine that
evaluates BUY/SELL signal rules tick by tick with full condition traces.
"""

__version__ = "0.1.0"
