"""Command-line interface: send one prompt to MiniMax and print the answer."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from minimax_chat.chat_client import MiniMaxChatClient
from minimax_chat.config import API_KEY_ENV, ClientConfig, load_config
from minimax_chat.errors import MiniMaxChatError
from minimax_chat.functions import FunctionCallbackRegistry
from minimax_chat.options import MiniMaxChatOptions
from minimax_chat.prompt import Prompt, PromptMessage

console = Console()


def build_prompt(
    text: str,
    system: str | None,
    model: str | None,
    temperature: float | None,
    functions: tuple[str, ...],
) -> Prompt:
    messages = []
    if system:
        messages.append(PromptMessage.system(system))
    messages.append(PromptMessage.user(text))

    options = None
    if model or temperature is not None or functions:
        options = MiniMaxChatOptions(
            model=model,
            temperature=temperature,
            functions=set(functions),
        )
    return Prompt(messages, options)


async def _run(config: ClientConfig, prompt: Prompt, stream: bool) -> None:
    registry = FunctionCallbackRegistry()
    registry.discover()
    client = MiniMaxChatClient.from_config(config, registry=registry)
    try:
        if stream:
            async for response in client.stream(prompt):
                if response.result is not None:
                    console.print(response.result.content, end="", markup=False, highlight=False)
            console.print()
            return

        response = await client.call(prompt)
        if response.result is None:
            console.print("[yellow]No response returned.[/yellow]")
            return
        console.print(Panel(Markdown(response.result.content), title="MiniMax"))
        if response.usage:
            console.print(
                f"[dim]tokens: {response.usage.get('prompt_tokens', 0)} in / "
                f"{response.usage.get('completion_tokens', 0)} out[/dim]"
            )
    finally:
        await client.close()


@click.command()
@click.argument("text")
@click.option("--system", "-s", default=None, help="System message")
@click.option("--model", "-m", default=None, help="Model name (overrides config)")
@click.option("--temperature", "-T", type=float, default=None, help="Sampling temperature")
@click.option("--function", "-f", "functions", multiple=True,
              help="Enable a discovered function by name (repeatable)")
@click.option("--stream", is_flag=True, help="Stream the answer as it is generated")
@click.option("--config", "-c", "config_path", default=None,
              help="Path to minimax_chat.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(text: str, system: str | None, model: str | None, temperature: float | None,
         functions: tuple[str, ...], stream: bool, config_path: str | None, verbose: bool):
    """Send TEXT to the MiniMax chat API."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    config = load_config(config_path)
    if not config.api_key:
        console.print(f"[red]No API key: set {API_KEY_ENV} or api_key in the config file.[/red]")
        sys.exit(1)

    prompt = build_prompt(text, system, model, temperature, functions)
    try:
        asyncio.run(_run(config, prompt, stream))
    except MiniMaxChatError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
