# File: subgxe/__init__.py
# Location: subgxe/subgxe/__init__.py

"""
subgxe Package.

This package implements pASTA, a subset-based meta-analysis that searches all
non-empty subsets of studies (or phenotypes) for the strongest combined
association signal and computes an exact p-value that accounts for the search.
"""

from .version import __version__
