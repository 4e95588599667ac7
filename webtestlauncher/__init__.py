"""Browser metadata, WebDriver capabilities, a WebDriver client and test-environment helpers."""

__version__ = "0.1.0"