"""Ruckus AP diagnostics over the rkscli shell."""

__version__ = "0.1.0"
