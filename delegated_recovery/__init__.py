"""
Delegated account recovery - account provider side
"""
__version__ = "0.1.0"
