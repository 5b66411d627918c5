import tomllib
import shutil
import re
from pathlib import Path
from typing import Any, Dict
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".flashdeck"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"

DEFAULT_TOKEN_MINUTES = 60 * 24 * 7
DEFAULT_SESSION_LIMIT = 20
MAX_SESSION_LIMIT = 50


def load_config() -> Dict[str, Any]:
    """Load config from ~/.flashdeck/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()  # Load .env for overrides (e.g., FLASHDECK_SECRET_KEY)
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)

    auth_cfg = config.get("auth", {})
    config["auth"] = {
        "secret_key": os.getenv("FLASHDECK_SECRET_KEY", auth_cfg.get("secret_key", "")),
        "token_minutes": int(os.getenv(
            "FLASHDECK_TOKEN_MINUTES",
            auth_cfg.get("token_minutes", DEFAULT_TOKEN_MINUTES),
        )),
    }
    study_cfg = config.get("study", {})
    max_limit = int(study_cfg.get("max_limit", MAX_SESSION_LIMIT))
    max_limit = max(1, min(max_limit, MAX_SESSION_LIMIT))
    default_limit = int(os.getenv(
        "FLASHDECK_DEFAULT_LIMIT",
        study_cfg.get("default_limit", DEFAULT_SESSION_LIMIT),
    ))
    config["study"] = {
        "max_limit": max_limit,
        "default_limit": max(1, min(default_limit, max_limit)),
    }
    config["scheduler"] = dict(config.get("scheduler", {}))
    logging_cfg = config.get("logging", {})
    config["logging"] = {
        "level": os.getenv("FLASHDECK_LOG_LEVEL", logging_cfg.get("level", "INFO")).upper(),
    }
    return config


def set_auth_secret_key(secret_key: str) -> None:
    """Persist the token signing key into config.toml."""
    load_config()
    text = CONFIG_PATH.read_text()
    if "[auth]" not in text:
        text = text.rstrip() + f'\n\n[auth]\nsecret_key = "{secret_key}"\n'
        CONFIG_PATH.write_text(text)
        return

    def update_section(match: re.Match) -> str:
        section = match.group(1)
        rest = match.group(2)
        if re.search(r"^secret_key\s*=", section, flags=re.MULTILINE):
            section = re.sub(
                r"^secret_key\s*=.*$",
                f'secret_key = "{secret_key}"',
                section,
                flags=re.MULTILINE,
            )
        else:
            lines = section.rstrip().splitlines()
            insert_at = 1 if lines else 0
            lines.insert(insert_at, f'secret_key = "{secret_key}"')
            section = "\n".join(lines) + "\n"
        return section + rest

    text = re.sub(r"(?ms)(^\[auth\].*?)(^\[|\Z)", update_section, text)
    CONFIG_PATH.write_text(text)
