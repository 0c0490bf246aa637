"""
rabiesmap package
=================

Reconciles WHO reported rabies deaths with UNDP Human Development Index
indicators and serves filtered views of the joined table.

- The CLI entry point is in `rabiesmap/cli.py`.
- The once-at-startup ETL is in `rabiesmap/pipeline.py`.
- Filtering / view models (the dashboard state) are in `rabiesmap/engine.py`.
"""

__version__ = '0.3.0'
