"""
Agent System
============

The agent turns a user message into a final answer. It:
1. Assembles context (persona, tools, runtime facts, memory, skills)
2. Sends the conversation to the model provider
3. Executes the tools the model asks for
4. Feeds the results back until the model answers

This module provides:
- Agent: The agent loop
- ContextBuilder: Builds prompts for the provider
- ConversationState: Message history with block-wise compaction
- LoopGuard: Detects repeated identical tool calls
- ToolExecutor: Runs tool calls and converts failures to results
"""

from dinoe.agent.context import ContextBuilder, Prompt, WorkspaceFacts
from dinoe.agent.conversation import ConversationState, Message
from dinoe.agent.core import ITERATION_LIMIT_FALLBACK, Agent
from dinoe.agent.loop_guard import LoopGuard, fingerprint_arguments
from dinoe.agent.tools_executor import ToolCallResult, ToolExecutor

__all__ = [
    "Agent",
    "ContextBuilder",
    "ConversationState",
    "ITERATION_LIMIT_FALLBACK",
    "LoopGuard",
    "Message",
    "Prompt",
    "ToolCallResult",
    "ToolExecutor",
    "WorkspaceFacts",
    "fingerprint_arguments",
]
