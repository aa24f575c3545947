"""
Glisten - appointment scheduling for a single-technician mobile car-detailing service.
"""

__version__ = "0.1.0"
