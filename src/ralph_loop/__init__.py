"""Ralph loop: run a coding agent against a checkbox backlog until it is done."""

__version__ = "0.1.0"
