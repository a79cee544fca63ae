"""
Offset player: live audio/video offset sync and offset-baking export.

Subpackages:
- sync: per-frame drift control between a video and an audio timeline
- export: filter-graph compiler and transcoding engine runner
- media: collaborator contracts and the asyncio frame scheduler
- models / config / metrics: shared data, settings and observability
"""

__version__ = "0.1.0"
