#!/usr/bin/env python3
"""
Quiz Presenter Bot - Main Entry Point

Runs the Discord bot that presents quizzes and keeps the seasonal
leaderboard. Configure it in config.json or through environment variables.

Usage:
    python main.py

Configuration:
    1. Copy config.example.json to config.json and fill in the values
    2. Link Discord user ids to admin emails under "auth.linked_accounts"
    3. Choose the "json" backend for local files or "rest" for a hosted database

Environment Variables:
    DISCORD_BOT_TOKEN: Your Discord bot token (overrides config.json)
    QUIZ_BACKEND_URL: Hosted backend URL (overrides config.json)
    QUIZ_BACKEND_KEY: Hosted backend API key (overrides config.json)
    QUIZ_PRESENTER_CONFIG: Path of the configuration file (default: config.json)
"""

import asyncio
import sys
import os
import json
from pathlib import Path


def load_config():
    """Load configuration from the config file."""
    config_path = Path(os.getenv('QUIZ_PRESENTER_CONFIG', 'config.json'))

    if not config_path.exists():
        print(f"❌ Error: {config_path} not found!")
        print("Please copy config.example.json to config.json and configure your Discord bot token.")
        sys.exit(1)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in {config_path}: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading {config_path}: {e}")
        sys.exit(1)


def get_bot_token(config):
    """Get bot token from environment variable or config file."""
    # Environment variable takes precedence
    token = os.getenv('DISCORD_BOT_TOKEN')
    if token:
        return token

    token = config.get('bot', {}).get('token')
    if not token or token == "YOUR_DISCORD_BOT_TOKEN_HERE":
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Update the 'token' field in config.json")
        sys.exit(1)

    return token


async def run_bot_with_config():
    """Run the bot with configuration."""
    from quiz_presenter.bot import run_bot, setup_logging

    config = load_config()

    log_config = config.get('logging', {})
    setup_logging(log_config.get('level', 'INFO'), log_config.get('log_directory', './logs/'))

    token = get_bot_token(config)
    await run_bot(token, config)


if __name__ == "__main__":
    try:
        print("🤖 Starting Quiz Presenter Bot...")
        asyncio.run(run_bot_with_config())
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
