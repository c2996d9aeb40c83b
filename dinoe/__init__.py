"""
dinoe - Conversational Agent Runtime
====================================

A small agent that talks to a language model, runs the tools the model asks
for, and remembers what happened in plain markdown files.

This package provides:
- Agent loop with iteration limits, loop detection and history compaction
- Provider adapter for OpenAI, OpenRouter, GLM (Z.AI) and Ollama, streamed or not
- Built-in tools: file_read, file_write, shell, memory_read, memory_write
- Markdown memory and workspace skills
"""

__version__ = "0.1.0"
