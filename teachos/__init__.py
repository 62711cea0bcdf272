"""A small teaching operating system: file system, log, pipes, console and scheduler."""

__version__ = "0.1.0"