"""Concrete adapters for the interfaces in ``ai_testbed.interfaces``.

- runtime/   -- container runtimes (docker)
- readiness/ -- readiness probes
- assets/    -- model listing and fetching backends
- llm/       -- chat providers used by the chat CLI
"""
