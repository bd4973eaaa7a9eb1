"""MCP server for the Story Memory engine.

Exposes document content, the memory pipeline and settings through Model
Context Protocol tools. A host calls `process_new_content` after every
generation to keep the memory current.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from story_memory.engine import NarrativeMemoryEngine
from story_memory.models import CycleResult, EngineConfig
from story_memory.state import load_state

# Global engine instance (initialized on first call)
_engine: NarrativeMemoryEngine | None = None


def get_engine() -> NarrativeMemoryEngine:
    """Get or initialize the engine instance."""
    global _engine
    if _engine is None:
        # Load config from environment or use defaults
        config = EngineConfig(
            db_path=os.getenv("STORY_MEMORY_DB_PATH", "story_memory.db"),
            model=os.getenv("STORY_MEMORY_MODEL", "gpt-4o-mini"),
            base_url=os.getenv("STORY_MEMORY_BASE_URL") or None,
            request_timeout=float(os.getenv("STORY_MEMORY_REQUEST_TIMEOUT", "60")),
            service_backend=os.getenv("STORY_MEMORY_SERVICE", "openai"),
            tokenizer_backend=os.getenv("STORY_MEMORY_TOKENIZER", "tiktoken"),
            window_delay=float(os.getenv("STORY_MEMORY_WINDOW_DELAY", "1.0")),
        )
        _engine = NarrativeMemoryEngine(config)
    return _engine


# Initialize server
server = Server("story_memory")


# -------------------------------------------------------------------------
# Tool Definitions
# -------------------------------------------------------------------------

_DOCUMENT_ONLY = {
    "type": "object",
    "properties": {
        "document_id": {"type": "string", "description": "Document identifier"},
    },
    "required": ["document_id"],
}

TOOLS = [
    Tool(
        name="add_section",
        description="Append a section of story text to a document",
        inputSchema={
            "type": "object",
            "properties": {
                "document_id": {"type": "string", "description": "Document identifier"},
                "text": {"type": "string", "description": "The section text"},
            },
            "required": ["document_id", "text"],
        },
    ),
    Tool(
        name="list_sections",
        description="List the section ids of a document in order",
        inputSchema=_DOCUMENT_ONLY,
    ),
    Tool(
        name="process_new_content",
        description="Fold text added since the last update into the memory (call after each generation)",
        inputSchema=_DOCUMENT_ONLY,
    ),
    Tool(
        name="force_refresh",
        description="Rebuild the memory from the document's entire content",
        inputSchema=_DOCUMENT_ONLY,
    ),
    Tool(
        name="clear_memory",
        description="Forget all tracked events, characters and the current situation",
        inputSchema=_DOCUMENT_ONLY,
    ),
    Tool(
        name="get_memory",
        description="Get the compiled memory text of a document",
        inputSchema=_DOCUMENT_ONLY,
    ),
    Tool(
        name="memory_status",
        description="Token usage of the memory and the most recent tracked events",
        inputSchema=_DOCUMENT_ONLY,
    ),
    Tool(
        name="get_settings",
        description="Get the memory settings of a document",
        inputSchema=_DOCUMENT_ONLY,
    ),
    Tool(
        name="update_settings",
        description="Update memory settings (token limit, auto-update, tracked keywords)",
        inputSchema={
            "type": "object",
            "properties": {
                "document_id": {"type": "string", "description": "Document identifier"},
                "token_limit": {
                    "type": "integer",
                    "minimum": 500,
                    "maximum": 2000,
                    "description": "Token budget of the compiled memory",
                },
                "auto_update": {
                    "type": "boolean",
                    "description": "Update the memory after every generation",
                },
                "tracked_keywords": {
                    "type": "string",
                    "description": "Comma-separated names and elements to watch for",
                },
            },
            "required": ["document_id"],
        },
    ),
]


def _result_payload(result: CycleResult) -> dict:
    return {
        "status": result.status,
        "message": result.message,
        "event_count": result.event_count,
        "memory": result.memory,
    }


# -------------------------------------------------------------------------
# MCP Handlers
# -------------------------------------------------------------------------


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        engine = get_engine()
        document_id = arguments["document_id"]

        # Route to appropriate engine method
        if name == "add_section":
            result = engine.add_section(document_id, arguments["text"])
            return [TextContent(type="text", text=f"Added section: {result}")]

        elif name == "list_sections":
            result = engine.section_ids(document_id)
            return [TextContent(type="text", text=json.dumps(result))]

        elif name == "process_new_content":
            result = await engine.pipeline(document_id).process_new_content()
            return [
                TextContent(
                    type="text", text=json.dumps(_result_payload(result), indent=2)
                )
            ]

        elif name == "force_refresh":
            result = await engine.pipeline(document_id).force_refresh()
            return [
                TextContent(
                    type="text", text=json.dumps(_result_payload(result), indent=2)
                )
            ]

        elif name == "clear_memory":
            result = await engine.pipeline(document_id).clear_memory()
            return [TextContent(type="text", text=result.message)]

        elif name == "get_memory":
            memory = engine.get_memory(document_id)
            return [TextContent(type="text", text=memory or "(No memory set)")]

        elif name == "memory_status":
            status = engine.pipeline(document_id).status()
            result = {
                "token_count": status.token_count,
                "token_limit": status.token_limit,
                "percent_used": status.percent_used,
                "event_count": status.event_count,
                "recent_events": status.recent_events,
            }
            return [TextContent(type="text", text=json.dumps(result, indent=2))]

        elif name == "get_settings":
            settings = load_state(engine.document(document_id)).settings
            return [
                TextContent(type="text", text=json.dumps(settings.to_dict(), indent=2))
            ]

        elif name == "update_settings":
            changes = {
                key: arguments[key]
                for key in ("token_limit", "auto_update", "tracked_keywords")
                if key in arguments
            }
            settings = await engine.pipeline(document_id).update_settings(**changes)
            return [
                TextContent(type="text", text=json.dumps(settings.to_dict(), indent=2))
            ]

        else:
            return [
                TextContent(
                    type="text", text=f"Unknown tool: {name}"
                )
            ]

    except Exception as e:
        return [
            TextContent(
                type="text", text=f"Error: {str(e)}"
            )
        ]


# -------------------------------------------------------------------------
# Main Entry Point
# -------------------------------------------------------------------------


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def run() -> None:
    """Console script entry point."""
    import asyncio

    logging.basicConfig(
        level=os.getenv("STORY_MEMORY_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
