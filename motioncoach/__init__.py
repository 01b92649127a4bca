"""Motion Coach: rep counting, scoring and coaching from body landmarks."""

__version__ = "0.1.0"
