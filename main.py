"""
Demo: chatting with Bedrock models through bedrockmux.

Lists the accessible models, streams a plain answer, then runs a small
tool-calling loop. Credentials come from the AWS profile / region settings
(BEDROCK_PROFILE, BEDROCK_REGION or their AWS_* equivalents, or a .env file).
"""

import argparse
import asyncio
import dataclasses

from rich.console import Console
from rich.table import Table

from bedrockmux import BedrockChatClient, RichPrinter, RichStreamPrinter, setup_logging

console = Console()


def get_weather(arguments: dict) -> dict:
    """Mock weather lookup."""
    weather_data = {
        "Paris": {"temp": 18, "condition": "Partly cloudy"},
        "London": {"temp": 14, "condition": "Rainy"},
        "Tokyo": {"temp": 22, "condition": "Sunny"},
    }
    location = arguments.get("location", "")
    data = weather_data.get(location, {"temp": 15, "condition": "Unknown"})
    return {"location": location, "temperature": data["temp"], "condition": data["condition"]}


async def show_models(client: BedrockChatClient) -> None:
    models = await client.list_models()

    table = Table(title=f"Bedrock models ({client.settings.region})")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Detail", style="dim")
    table.add_column("Max input", justify="right")
    for entry in models:
        table.add_row(entry["id"], entry["name"], entry["detail"], str(entry["max_input_tokens"]))
    console.print(table)


async def stream_answer(client: BedrockChatClient, model: str, prompt: str) -> None:
    messages = [
        client.create_message("system", "You are a concise assistant."),
        client.create_message("user", prompt),
    ]
    await RichStreamPrinter(title=model).print_stream(client.astream(messages, model=model))


async def tool_loop(client: BedrockChatClient, model: str) -> None:
    weather_tool = client.create_tool(
        "get_weather",
        "Get the current weather for a city.",
        {"location": {"type": "string", "description": "City name"}},
        required=["location"],
    )
    messages = [client.create_message("user", "What's the weather like in Paris and Tokyo?")]

    response = await client.chat_with_tools(
        messages,
        tools=[weather_tool],
        tool_handlers={"get_weather": get_weather},
        model=model,
    )
    RichPrinter(title="Tool loop").print_chat(response)
    for call in response.get("tool_history", []):
        console.print(f"[dim]{call['tool']}({call['arguments']}) -> {call['result']}[/dim]")


async def main() -> None:
    parser = argparse.ArgumentParser(description="bedrockmux demo")
    parser.add_argument("--model", help="Model or inference profile id (default: BEDROCK_PREFERRED_MODEL or first available)")
    parser.add_argument("--prompt", default="Explain prompt caching in two sentences.")
    parser.add_argument("--thinking", action="store_true", help="Enable extended thinking where the model supports it")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    setup_logging(args.log_level)
    client = BedrockChatClient()
    if args.thinking:
        client.update_settings(dataclasses.replace(client.settings, thinking_enabled=True))

    await show_models(client)
    entry = await client.get_model(args.model)

    await stream_answer(client, entry["id"], args.prompt)
    await tool_loop(client, entry["id"])


if __name__ == "__main__":
    asyncio.run(main())
