"""
EBIOS RM editor - structured records for EBIOS RM risk analyses.

Stores analyses as JSON documents, derives workshop metrics and views
(networks, compliance donut, action plan), and publishes static HTML reports.
"""

__version__ = "1.0.0"
