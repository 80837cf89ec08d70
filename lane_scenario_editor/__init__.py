"""Lane scenario editor: lane paths and obstacles placed on a 3D ground plane."""

__version__ = "0.1.0"
