"""HR and payroll backend with grant funding allocations."""

__version__ = "0.1.0"
