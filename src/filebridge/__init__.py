"""Uniform file operations across local disks and cloud object storage."""

__VERSION__ = "0.1.0"
