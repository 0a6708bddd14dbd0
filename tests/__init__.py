"""httpntlm test suite."""
