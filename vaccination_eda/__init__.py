"""vaccination_eda package initializer.

This package contains the exploratory-analysis pipeline for patient and
vaccination records used by the CLI and the Shiny dashboard.  Modules
cover loading, date parsing, feature derivation, aggregation, caching
and plotting.  See individual module docstrings for details.
"""
