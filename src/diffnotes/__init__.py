"""diffnotes - terminal code review with comments stored in git notes"""

__version__ = "0.1.0"
