"""Domain services and helpers for the waste-reporting API."""
