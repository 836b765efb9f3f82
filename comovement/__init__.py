"""
Stock Co-Movement Analytics

Aligns irregularly sampled price series onto a common timestamp grid and
computes the pairwise Pearson correlation matrix between instruments.
"""

__version__ = "0.1.0"
