"""Line fisher: expands chess opening lines with a UCI engine."""

__version__ = "1.0.0"
