"""StyleBatch: style preset batch generation"""

__version__ = "1.0.0"
