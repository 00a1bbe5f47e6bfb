"""PressPlan - production scheduling for print shops."""

__version__ = "0.1.0"
