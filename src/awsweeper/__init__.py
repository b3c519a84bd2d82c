"""AWSweeper - bulk cleanup of AWS resources selected by declarative criteria."""

__version__ = "0.1.0"
