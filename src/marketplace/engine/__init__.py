"""Pure decision logic: scoring, state machines and the permission matrix."""
