"""cloneplan - turns a business URL into a staged, AI-generated cloning plan."""

__version__ = "0.1.0"
