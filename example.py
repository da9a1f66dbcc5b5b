#!/usr/bin/env python3
"""
Complete Assistant Example

This example demonstrates the relaykit assistant end to end:
- Loading an external MCP server from the project configuration
- A primary session turn that calls external tools
- Creating and messaging a sub-agent
- Tool scope selection
- Starting a new session

It talks to the OpenAI Responses API, so OPENAI_API_KEY must be set. The
sample server in fastmcp_simple_server.py is started as a subprocess.
"""

import asyncio
import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from relaykit.assistant import (
    AgentConfig, Assistant, AssistantSettings, DisplaySink, JsonFilePersistenceStore,
    OpenAIResponsesBackend, create_assistant
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVER_SCRIPT = Path(__file__).resolve().parent / "fastmcp_simple_server.py"


class ConsoleDisplay(DisplaySink):
    """Prints every labelled post."""

    def post(self, label: str, text: str) -> None:
        print(f"[{label}] {text}")


class AssistantExample:
    """Complete example showcasing the assistant's capabilities."""

    def __init__(self, project_root: Path):
        self.project_root = project_root
        self.assistant: Optional[Assistant] = None

    def write_config(self) -> None:
        config_dir = self.project_root / ".relaykit"
        config_dir.mkdir(parents=True, exist_ok=True)
        (config_dir / "mcp-servers.json").write_text(json.dumps({
            "mcpServers": {
                "deploy": {"command": sys.executable, "args": [str(SERVER_SCRIPT)]}
            }
        }, indent=2))

    async def setup(self):
        """Initialize the assistant."""
        logger.info("Setting up assistant...")
        self.write_config()

        settings = AssistantSettings(chat_model="gpt-5-mini", extra_instructions="Keep answers short.")
        self.assistant = create_assistant(
            OpenAIResponsesBackend(reasoning_effort=settings.reasoning_effort),
            project_root=self.project_root,
            settings=settings,
            persistence=JsonFilePersistenceStore(self.project_root / ".relaykit" / "state.json"),
            display=ConsoleDisplay(),
            watch_config=True,
        )
        await self.assistant.start(wait_for_discovery=True)

        tools = self.assistant.external_tools.tools_by_server()
        logger.info(f"External tools: { {name: [t.name for t in ts] for name, ts in tools.items()} }")

    async def example_primary_turn(self):
        """Example 1: a primary turn that uses external tools."""
        logger.info("\nExample 1: Primary session turn")
        assert self.assistant is not None

        await self.assistant.session.send_message("Deploy the api service at version 1.2, then check its status.")
        logger.info(f"Continuation token: {self.assistant.session.continuation_token}")

    async def example_sub_agent(self):
        """Example 2: a sub-agent with its own conversation."""
        logger.info("\nExample 2: Sub-agent")
        assert self.assistant is not None

        manager = self.assistant.agent_manager
        agent_id = manager.create(AgentConfig(
            role="release-checker",
            instructions="Check deployments and report in one sentence.",
            allowed_builtin_names=set(),
        ))
        reply = await manager.send(agent_id, "Is the api service deployed? Which version?")
        logger.info(f"Agent reply: {reply}")

    async def example_scope(self):
        """Example 3: the model narrows its own tool scope."""
        logger.info("\nExample 3: Tool scope")
        assert self.assistant is not None

        await self.assistant.session.send_message(
            "Use SetToolScopeTool to restrict yourself to the deploy server, then add 2 and 40."
        )
        logger.info(f"Scope: {self.assistant.scope_selector.describe()}")

    async def example_new_session(self):
        """Example 4: new session keeps agents but resets conversations."""
        logger.info("\nExample 4: New session")
        assert self.assistant is not None

        session_id = self.assistant.session.new_session()
        roster = [snapshot.role for snapshot in self.assistant.agent_manager.get_roster()]
        logger.info(f"New session {session_id}, agents kept: {roster}")

    async def run_all_examples(self):
        """Run all examples in sequence."""
        await self.setup()

        try:
            await self.example_primary_turn()
            await self.example_sub_agent()
            await self.example_scope()
            await self.example_new_session()

        except Exception as e:
            logger.error(f"Example execution failed: {e}")

        finally:
            if self.assistant is not None:
                await self.assistant.shutdown()
            logger.info("Cleanup completed")


async def main():
    """Main entry point for the example."""
    print("relaykit assistant - Complete Example")
    print("=" * 60)

    start_time = datetime.now(timezone.utc)

    try:
        with tempfile.TemporaryDirectory(prefix="relaykit-example-") as project_root:
            example = AssistantExample(Path(project_root))
            await example.run_all_examples()

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        print("\n" + "=" * 60)
        print("All examples completed")
        print(f"Total execution time: {duration:.2f} seconds")
        print("=" * 60)

    except KeyboardInterrupt:
        print("\nExample interrupted by user")
    except Exception as e:
        print(f"\nExample failed with error: {e}")
        logger.exception("Detailed error information:")


if __name__ == "__main__":
    asyncio.run(main())
