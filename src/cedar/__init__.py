"""
Cedar Sells: backend del sitio de listados de propiedades.
"""

__version__ = "0.1.0"
