"""
HTTP Monitor Bot — GitHub-backed outage tracker.

Probes a single HTTP endpoint on a schedule and keeps one GitHub issue
plus a Markdown incident post in sync with whether it is reachable.
"""

__version__ = "1.0.0"
