"""
Session layer: engine contract, response stream and the guard that owns the
current session.
"""
