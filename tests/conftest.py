"""
Shared pytest configuration: make the package importable from a source checkout.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
