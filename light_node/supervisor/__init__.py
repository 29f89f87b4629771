"""
Connection Supervisor
=====================

- ResponsePump: drains the current response stream (background thread)
- Reconnector: close → open (retry forever) → resubscribe → install
- HealthPoller: submits system_health on a fixed interval (main thread)
- ConnectionSupervisor: wires the loops around one SessionGuard
"""
