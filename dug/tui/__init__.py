"""Screen-based terminal UI: navigator, router, screens and the pieces they share."""
