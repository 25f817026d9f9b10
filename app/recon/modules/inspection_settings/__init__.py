"""
Inspection Settings module.

One settings document per dealership describes the checklist: ordered sections,
their items, the four rating labels, and global/customer-PDF options.

Rules:
- Reads never fail: a missing, partial or unreadable document is merged with defaults.
- Writes replace the whole document (no field-level persistence).
- Import/reset issue a fresh settings id; they never reuse the previous one.
"""
