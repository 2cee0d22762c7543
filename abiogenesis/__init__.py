"""
abiogenesis — AI-powered command interceptor.

Runs system commands when they exist, cached commands when they were
generated before, and otherwise asks the text-generation service to write a
Deno script, which runs in the sandbox with only the permissions the user
agreed to.
"""

__version__ = "0.1.0"
