"""WhatsApp course-catalog assistant."""

__version__ = "0.1.0"
