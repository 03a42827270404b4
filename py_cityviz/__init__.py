"""
Geography ingestion and traffic routing for city visualisation.
"""

__version__ = "0.1.0"
