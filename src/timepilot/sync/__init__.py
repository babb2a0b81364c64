"""Client-side synchronization of the single state document.

The orchestrator owns the local mirror, the applier merges assistant
patches through it, and the assistant client talks to the gateway.
All of it runs on one asyncio loop.
"""
