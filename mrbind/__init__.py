"""
mrbind: bind plain Python map/reduce/combiner functions to a batch
processing engine's worker lifecycle through job configuration.
"""

__version__ = "0.1.0"
