"""Example of using Story Memory through MCP.

This demonstrates how a writing host would drive the memory: append each
generated section, then call process_new_content from its
generation-finished hook.
"""

import asyncio
import json
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client


async def run_example():
    """Run example MCP interactions."""
    # Connect to the MCP server
    server_params = StdioServerParameters(
        command="story-memory-mcp",
        env={
            "STORY_MEMORY_DB_PATH": "example_story.db",
            "STORY_MEMORY_MODEL": "gpt-4o-mini",
        },
    )

    async with stdio_client(server_params) as (read, write):
        async with ClientSession(read, write) as session:
            # Initialize connection
            await session.initialize()

            # List available tools
            tools = await session.list_tools()
            print(f"Available tools: {[t.name for t in tools.tools]}")

            # Configure the document
            print("\n=== Settings ===")
            settings = await session.call_tool(
                "update_settings",
                {
                    "document_id": "lighthouse",
                    "token_limit": 1000,
                    "tracked_keywords": "Ines, the keeper",
                },
            )
            print(settings.content[0].text)

            # Simulate generations
            print("\n=== Generating ===")
            for text in [
                "Ines rowed out to the lighthouse at dusk. The lamp was dark "
                "for the first time in forty years.",
                "Inside, the keeper's logbook ended mid-sentence: 'They came "
                "up from the water again and this time'",
            ]:
                await session.call_tool(
                    "add_section", {"document_id": "lighthouse", "text": text}
                )
                result = await session.call_tool(
                    "process_new_content", {"document_id": "lighthouse"}
                )
                outcome = json.loads(result.content[0].text)
                print(f"  [{outcome['status']}] {outcome['message']}")

            # Inspect the compiled memory
            print("\n=== Memory ===")
            memory = await session.call_tool("get_memory", {"document_id": "lighthouse"})
            print(memory.content[0].text)

            status = await session.call_tool("memory_status", {"document_id": "lighthouse"})
            status_data = json.loads(status.content[0].text)
            print(
                f"\nTokens: {status_data['token_count']} / {status_data['token_limit']}"
                f" ({status_data['percent_used']}%)"
            )
            for event in status_data["recent_events"]:
                print(f"  {event}")


if __name__ == "__main__":
    asyncio.run(run_example())
