"""
CSV Reconcile
Reconciles pairs of delimited files from two directories into matched,
only-in-left and only-in-right record sets.
"""

__version__ = "1.0.0"
