"""
Extrator XML Fiscal - NF-e / CT-e extraction into spreadsheet rows.
"""
__version__ = "2.0.0"
