"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Binary format codes and named constants
- exceptions: Exception taxonomy (decode, sink, encoding, column decode)
"""
