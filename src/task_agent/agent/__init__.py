"""
Agent module - the think/act loop and its supporting machinery.

Includes:
- AgentLoop: Drives a task session from goal to terminal status
- Transcript: Folds session events into conversation turns
- Compaction: Summarizes old turns once the transcript grows too large
- LoopDetector: Spots the agent repeating the same action
"""

from .core import AgentLoop, HumanInputHandler
from .compaction import CompactionConfig, CompactionResult, compact_transcript
from .events import AgentEvent, AgentEventType, EventSink
from .loop_detector import DEFAULT_LOOP_EXEMPT_TOOLS, LoopDetector, action_signature
from .transcript import TranscriptBuilder, rebuild_transcript

__all__ = [
    "AgentLoop",
    "HumanInputHandler",
    "CompactionConfig",
    "CompactionResult",
    "compact_transcript",
    "AgentEvent",
    "AgentEventType",
    "EventSink",
    "DEFAULT_LOOP_EXEMPT_TOOLS",
    "LoopDetector",
    "action_signature",
    "TranscriptBuilder",
    "rebuild_transcript",
]
