"""fodcheck — find fixed-output derivations that do not reproduce."""

__version__ = "0.1.0"
