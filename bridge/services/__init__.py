"""
Services
========

Stateful owners of the bridge core. Each service guards its own state with
its own lock; the ServiceContainer wires them together.
"""
