"""pm command implementations."""
