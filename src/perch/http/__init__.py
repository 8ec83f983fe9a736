"""HTTP value types: the cookie codec, outgoing request specs and received responses."""
