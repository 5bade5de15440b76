"""Mock e-commerce backend: JSON collection stores and the auth chain"""

__version__ = "1.0.0"
