"""
Expense Parser - Source Package

Turns a free-form spoken or typed utterance ("午餐花了35元") into a
structured expense record: amount, category and a short note.

DESIGN PRINCIPLES:
1. Local rules first: the offline extractor always produces an answer
2. Remote understanding is an upgrade, never a dependency
3. Failures are recorded, never raised to the caller of parse()
4. Secrets are never logged or echoed
5. Every step is auditable
"""

__version__ = "1.0.0"
__author__ = "Expense Parser Team"
