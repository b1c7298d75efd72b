"""
remote_tools.py: Connect to remote tool servers and call one of their tools.

Shows how to register servers, list their namespaced tools and route a call.

Usage:
    export TOOLWIRE_SERVER_URL=http://localhost:8000/mcp
    python examples/remote_tools.py
"""

import logging
import os

from toolwire.mcp import (
    ConnectionManager,
    RemoteToolSettings,
    SecretRedactionFilter,
    wrap_external_content,
)


async def main() -> None:
    handler = logging.StreamHandler()
    handler.addFilter(SecretRedactionFilter())
    logging.basicConfig(level=logging.INFO, handlers=[handler])

    manager = ConnectionManager(
        settings=RemoteToolSettings.from_env(),
        wrap_content=wrap_external_content,
    )
    outcomes = await manager.initialize_all(
        [
            {
                "id": "local",
                "name": "Local tools",
                "url": os.getenv("TOOLWIRE_SERVER_URL", "http://localhost:8000/mcp"),
                "authToken": os.getenv("TOOLWIRE_SERVER_TOKEN"),
            }
        ]
    )
    for outcome in outcomes:
        print(f"{outcome.id}: {outcome.status} ({outcome.tools} tools) {outcome.error or ''}")

    tools = manager.get_all_tools()
    for tool in tools:
        print(f"- {tool.name}: {tool.description}")

    if tools:
        result = await manager.execute_tool(tools[0].name, {})
        print(result.content if result.success else f"error: {result.error_message}")

    manager.shutdown()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
