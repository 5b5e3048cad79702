"""Voice session coordination: events, transcript and the session state machine."""
