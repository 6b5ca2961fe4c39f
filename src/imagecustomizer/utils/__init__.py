"""Shell, file and logging helpers."""
