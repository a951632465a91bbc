"""Customer notification queue, review and delivery."""
