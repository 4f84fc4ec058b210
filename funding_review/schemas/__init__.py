"""Request and response payload schemas."""
