"""Textile invoice scanning pipeline.

Gates photographed bills on image quality, runs Tesseract OCR one or more
times, extracts bill number, date, customer, GST and total with ordered regex
rules, and scores each field, merging multi-pass results by majority vote.
"""

__version__ = "0.1.0"
