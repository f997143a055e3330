"""
Grave Registry – field capture of grave markers.

Records photographed stèles with their transcribed inscriptions, GPS
coordinates and physical condition, keeps them in a local store and pushes
unsynced records to a spreadsheet webhook.
"""

__all__ = [
    "config",
    "errors",
    "logging",
    "paths",
]

__version__ = "0.1.0"
