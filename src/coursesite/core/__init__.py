"""Build units, staleness detection, scheduling and the site build."""
