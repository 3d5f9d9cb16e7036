"""
Article narration with word-synchronized captions.
"""

__version__ = "1.0.0"
