"""Remote message sources."""
