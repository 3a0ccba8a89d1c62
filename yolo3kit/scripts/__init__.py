"""Command-line entry points for yolo3kit."""
