"""
devicewatch: on-device telemetry-to-alert pipeline.
"""

__version__ = "1.0.0"
