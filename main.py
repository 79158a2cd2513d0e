# main.py
import os
import sys
import json
import logging
import argparse

from api import ApiClient
from cashier import CashierSystem
from database import Database
from events import EventHub
from logger import setup_logger

logger = logging.getLogger("pos_cart.main")

# Default configuration
DEFAULT_CONFIG = {
    "api": {
        "base_url": "http://localhost:3001/api",
        "timeout": 10,
        "token": None
    },
    "database": {
        "name": "pos.db"
    },
    "logging": {
        "level": "INFO",
        "file": "logs/pos.log",
        "max_size": 1048576,
        "backup_count": 3
    },
    "user": {
        "role": "KASIR",
        "cabang_id": None
    },
    "ui": {
        "theme": "default",
        "currency": "Rp",
        "event_poll_ms": 200
    }
}


def merge_config(defaults, overrides):
    """Overlay overrides on defaults, one level of nesting deep."""
    merged = {}
    for key, value in defaults.items():
        if isinstance(value, dict):
            merged[key] = {**value, **(overrides.get(key) or {})}
        else:
            merged[key] = overrides.get(key, value)
    for key, value in overrides.items():
        merged.setdefault(key, value)
    return merged


def load_config(config_path="config.json"):
    """Load configuration from JSON file or create default if not exists"""
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config = merge_config(DEFAULT_CONFIG, json.load(f))
                logger.info(f"Configuration loaded from {config_path}")
                return config
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config: {e}")
            return merge_config(DEFAULT_CONFIG, {})

    try:
        with open(config_path, 'w') as f:
            json.dump(DEFAULT_CONFIG, f, indent=4)
            logger.info(f"Created default configuration at {config_path}")
    except OSError as e:
        logger.error(f"Could not write default config: {e}")

    return merge_config(DEFAULT_CONFIG, {})


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="POS cashier terminal")
    parser.add_argument("--config", help="Path to configuration file", default="config.json")
    parser.add_argument("--debug", help="Enable debug mode", action="store_true")
    parser.add_argument("--api-url", help="Override the API base URL")
    parser.add_argument("--role", help="User role (KASIR is pinned to one branch)")
    parser.add_argument("--branch", help="Assigned branch id")
    return parser.parse_args(argv)


def apply_arguments(config, args):
    """Fold command line overrides into the loaded config."""
    if args.debug:
        config["logging"]["level"] = "DEBUG"
    if args.api_url:
        config["api"]["base_url"] = args.api_url
    if args.role:
        config["user"]["role"] = args.role
    if args.branch:
        config["user"]["cabang_id"] = args.branch
    return config


def build_system(config, db=None, api=None):
    """Wire the cashier system from config."""
    db = db or Database(config["database"].get("name", "pos.db"))
    api = api or ApiClient(
        config["api"]["base_url"],
        token=config["api"].get("token"),
        timeout=config["api"].get("timeout", 10),
    )
    return CashierSystem(
        api,
        db,
        hub=EventHub(),
        role=config["user"].get("role"),
        branch_id=config["user"].get("cabang_id"),
    )


def main(argv=None):
    try:
        args = parse_arguments(argv)
        config = apply_arguments(load_config(args.config), args)
        setup_logger(config)

        system = build_system(config)
        logger.info(f"Cashier system ready against {config['api']['base_url']}")

        # Imported late so the engine can run headless
        from ui import CashierUI
        app = CashierUI(system, config)
        logger.info("Starting POS application")
        app.run()

    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
