# This file makes 'database' a Python package.
