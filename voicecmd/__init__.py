"""
Voice Command Center - spoken shortcuts for the desktop shell

Turns a short spoken phrase into a shell command, either by matching one of the
user's registered trigger phrases or by asking an LLM to write a one-liner,
then shows it on a confirmation surface before anything runs.

Core modules:
- center: resolution, confirmation state machine, execution and history
- utils: environment parsing helpers shared by the configuration layer
"""

__version__ = "0.4.2"
