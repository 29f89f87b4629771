"""
light_node - Connection Supervisor for a Light Client Session
=============================================================

Keeps one light-client session alive and subscribed:

1. **session** - engine contract, response stream, exclusive-access guard
2. **rpc** - request builder and health evaluator
3. **supervisor** - response pump, reconnect loop, health poll loop
4. **core** - configuration and chain specification
"""

__version__ = "0.1.0"
