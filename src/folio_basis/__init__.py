"""
folio-basis

A cost-basis lot accounting and tax/performance analytics engine. It replays
transaction histories into tax lots, allocates sales under FIFO, LIFO, HIFO
or specific identification, classifies holding periods, estimates tax
liability (including ESPP/RSU rules), and computes return and risk
statistics from a portfolio value series.

All monetary and share quantities are Decimal. No price fetching, no
persistence beyond CSV/JSONL reports.
"""

__version__ = "0.1.0"
__author__ = "folio-basis developers"
