"""Screen a Claude Agent SDK session with the hooks in examples/hooks.json."""

import asyncio
from pathlib import Path

from hookwarden import HooksBridge, HookwardenClaudeClient


async def main() -> None:
    bridge = HooksBridge(config_path=Path(__file__).with_name("hooks.json"))
    async with HookwardenClaudeClient(bridge=bridge, allowed_tools=["Bash", "Read"]) as client:
        for text in await client.ask("List the files in the current directory, then delete them all."):
            print(text)


if __name__ == "__main__":
    asyncio.run(main())
