"""Process-wide infrastructure: logging, metrics and the job scheduler."""
