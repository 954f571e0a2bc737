"""Pure kernel domain objects: clock, workflow types, amount helpers."""
