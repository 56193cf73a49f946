"""
mediaopt — image, video and PDF optimization toolkit.
"""

__version__ = "0.4.0"
