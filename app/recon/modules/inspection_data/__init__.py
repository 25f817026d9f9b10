"""
Inspection Data module.

Per-vehicle ratings keyed by section, the rating-change audit notes derived from
them, and the section status / progress rules used by dashboards and reports.
"""
