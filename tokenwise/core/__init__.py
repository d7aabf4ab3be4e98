"""
Core modules for TokenWise.

This package contains the analysis pipeline: log parsing, pricing,
cost aggregation, anomaly detection, and optimization recommendations.
"""
