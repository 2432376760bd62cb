"""Event timeline source implementations."""
