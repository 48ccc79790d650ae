"""Cross-validation of claim XML submissions against reference datasets."""

__version__ = "0.1.0"
