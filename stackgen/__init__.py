"""stackgen -- Laravel + Angular full-stack project generator.

Generates a two-tier application skeleton (Laravel backend, Angular
frontend, MySQL database) and runs both development servers in one
foreground session.
"""

__version__ = "1.0.0"
