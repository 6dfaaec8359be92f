"""
Resource catalog.

Responsibilities:
- Load resource metadata (subject, grade, type, creation time) from the seed CSV.
- Answer filtered, newest-first queries built with ``ResourceQuery``.
- Hold the derived rating aggregate and apply aggregate writes atomically.
"""
