import asyncio
import os
from typing import Optional

from dotenv import load_dotenv

from foundry_agent import FoundryAgentService, FoundrySettings, setup_logging
from foundry_agent.agent_core.exceptions import FoundryAgentError

# Load environment variables
load_dotenv()


async def main() -> None:
    """
    Main function to run the CLI chat against the configured agent runtime and MCP gateway.
    """
    setup_logging(os.getenv("FOUNDRY_LOG_LEVEL", "WARNING"))
    print("Welcome to the CLI Chat (Foundry MCP Agent)!")

    try:
        settings = FoundrySettings.from_env(load_dotenv_file=False)
        service = FoundryAgentService.from_settings(settings)
    except FoundryAgentError as e:
        print(f"Error: {e}")
        return

    [server] = service.server_info()["servers"]
    print(f"MCP server '{server['label']}' with tools: {', '.join(server['allowedTools']) or 'none'}")
    if not server["hasCredentials"]:
        print("Warning: COPILOT_MCP_TOKEN is not set, tool calls will report a missing credential.")

    thread: Optional[str] = None

    print("\nStart chatting! Type 'exit' or 'quit' to stop, 'new' for a new thread.")
    async with service:
        while True:
            user_input = input("\nYou: ").strip()
            if user_input.lower() in ["exit", "quit"]:
                print("Goodbye!")
                break

            if user_input.lower() == "new":
                thread = None
                print("Started a new thread.")
                continue

            if not user_input:
                continue

            try:
                print("Assistant: ", end="", flush=True)
                async for update in service.stream_turn(user_input, thread_handle=thread):
                    print(update.delta, end="", flush=True)
                    if update.result is not None:
                        print()
                        for citation in update.result.citations:
                            print(f"  [{citation.title or 'source'}] {citation.url}")
                        thread = update.result.thread_handle or thread

            except FoundryAgentError as e:
                print(f"An error occurred: {e}")


if __name__ == "__main__":
    asyncio.run(main())
