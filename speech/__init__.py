"""Speech capture and speech output engines."""
