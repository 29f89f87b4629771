"""JSON-RPC request construction and health response evaluation."""
