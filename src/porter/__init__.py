"""porter - replay commits from one repository onto others."""

__version__ = "0.3.0"
