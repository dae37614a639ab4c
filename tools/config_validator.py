"""
Configuration Validation Module

Validates app.yaml against Pydantic schemas and builds the runtime config
objects (BotConfig, SimulationParams) from it. Also validates the JSON body
of an operator configuration update.

Usage:
    from tools.config_validator import load_app_config

    app_config = load_app_config("config/app.yaml")   # raises ValueError if invalid
    engine = TradingEngine(app_config.bot, app_config.simulation)
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from core.models import SECRET_MASK_PREFIX, BotConfig
from core.settlement import SimulationParams

logger = logging.getLogger(__name__)

# Environment variables consulted when the matching credential is empty in the file
CREDENTIAL_ENV_VARS = {
    "polymarket_api_key": "POLYMARKET_API_KEY",
    "polymarket_secret": "POLYMARKET_SECRET",
    "polymarket_passphrase": "POLYMARKET_PASSPHRASE",
    "claude_api_key": "ANTHROPIC_API_KEY",
}

_DEFAULTS = BotConfig()


# ===== App Schema =====
class BotSection(BaseModel):
    """Trading parameters"""
    initial_balance: float = Field(default=_DEFAULTS.initial_balance, gt=0, description="Starting simulated balance")
    max_bet_size: float = Field(default=_DEFAULTS.max_bet_size, gt=0, description="Cap on a single order size")
    min_edge_threshold: float = Field(default=_DEFAULTS.min_edge_threshold, ge=0, le=1, description="Minimum edge to surface")
    max_concurrent_orders: int = Field(default=_DEFAULTS.max_concurrent_orders, ge=1, description="Max open orders")
    scan_interval_secs: int = Field(default=_DEFAULTS.scan_interval_secs, ge=1, description="Seconds between cycles")
    auto_trading: bool = Field(default=_DEFAULTS.auto_trading, description="Open simulated orders on edges")
    survival_mode: bool = Field(default=_DEFAULTS.survival_mode, description="Advisory flag")
    claude_model: str = Field(default=_DEFAULTS.claude_model, min_length=1, description="Anthropic model name")


class CredentialsSection(BaseModel):
    """API credentials (may be supplied through the environment)"""
    polymarket_api_key: str = ""
    polymarket_secret: str = ""
    polymarket_passphrase: str = ""
    claude_api_key: str = ""

    @field_validator("polymarket_api_key", "polymarket_secret", "polymarket_passphrase", "claude_api_key",
                     mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        """YAML `key:` with no value parses as None"""
        return "" if v is None else v


class SimulationSection(BaseModel):
    """Settlement tunables"""
    win_probability: float = Field(default=0.65, ge=0, le=1, description="Probability a filled order wins")
    win_payout_factor: float = Field(default=0.3, ge=0, le=1, description="Share of the binary payout realized")
    loss_factor: float = Field(default=0.7, ge=0, le=1, description="Share of the stake lost")
    seed: Optional[int] = Field(default=None, description="Random seed for reproducible runs")


class LoggingSection(BaseModel):
    """Process logging"""
    level: str = Field(default="INFO", description="Root log level")
    file: Optional[str] = Field(default="logs/polyedge.log", description="Log file path (null disables)")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level {v}")
        return level


class MonitoringSection(BaseModel):
    """Metrics exporter and operator HTTP server"""
    metrics_enabled: bool = False
    metrics_port: int = Field(default=9100, ge=1, le=65535)
    operator_enabled: bool = True
    operator_host: str = "127.0.0.1"
    operator_port: int = Field(default=8080, ge=0, le=65535)  # 0 binds an ephemeral port


class AppConfigSchema(BaseModel):
    """Complete app.yaml schema"""
    bot: BotSection = Field(default_factory=BotSection)
    credentials: CredentialsSection = Field(default_factory=CredentialsSection)
    simulation: SimulationSection = Field(default_factory=SimulationSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)
    monitoring: MonitoringSection = Field(default_factory=MonitoringSection)


class BotConfigPayload(BotSection, CredentialsSection):
    """Flat BotConfig body accepted by the operator configuration endpoint"""


@dataclass
class AppConfig:
    """Validated runtime configuration"""
    bot: BotConfig
    simulation: SimulationParams
    logging: LoggingSection = field(default_factory=LoggingSection)
    monitoring: MonitoringSection = field(default_factory=MonitoringSection)


# ===== Validation Functions =====
def _format_yaml_error(file_path: Path, error: yaml.YAMLError) -> str:
    """Return enriched message with line/column context for YAML errors."""
    message = f"Malformed YAML in {file_path}: {error}"
    mark = getattr(error, "problem_mark", None)
    if mark is None:
        return message

    problem = getattr(error, "problem", str(error))
    return f"Malformed YAML in {file_path}: line {mark.line + 1}, column {mark.column + 1}: {problem}"


def _format_validation_errors(error: ValidationError, prefix: str = "") -> List[str]:
    messages = []
    for item in error.errors():
        loc = " -> ".join(str(part) for part in item["loc"])
        messages.append(f"{prefix}{loc}: {item['msg']}")
    return messages


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """
    Load YAML file and return as dict.

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is malformed
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path, "r") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise yaml.YAMLError(_format_yaml_error(file_path, e))


def validate_config(raw: Dict[str, Any]) -> List[str]:
    """
    Validate a parsed app config mapping.

    Returns:
        List of error messages (empty if valid)
    """
    if not isinstance(raw, dict):
        return [f"app.yaml: top level must be a mapping, got {type(raw).__name__}"]
    try:
        AppConfigSchema(**raw)
    except ValidationError as e:
        return _format_validation_errors(e, prefix="app.yaml: ")
    return []


def apply_env_overrides(credentials: Dict[str, str], environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Fill empty credentials from the environment."""
    env = os.environ if environ is None else environ
    merged = dict(credentials)
    for name, var in CREDENTIAL_ENV_VARS.items():
        if not merged.get(name) and env.get(var):
            merged[name] = env[var]
    return merged


def build_app_config(raw: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> AppConfig:
    """
    Validate a parsed mapping and build the runtime configuration.

    Raises:
        ValueError: listing every validation error
    """
    errors = validate_config(raw)
    if errors:
        logger.error(f"❌ {len(errors)} validation error(s) found")
        raise ValueError("Invalid configuration:\n" + "\n".join(f"  • {e}" for e in errors))

    schema = AppConfigSchema(**raw)
    credentials = apply_env_overrides(schema.credentials.model_dump(), environ)
    bot = BotConfig(**schema.bot.model_dump(), **credentials)
    sim = schema.simulation
    simulation = SimulationParams(
        win_probability=sim.win_probability,
        win_payout_factor=sim.win_payout_factor,
        loss_factor=sim.loss_factor,
        seed=sim.seed,
    )
    return AppConfig(bot=bot, simulation=simulation, logging=schema.logging, monitoring=schema.monitoring)


def load_app_config(path: Union[str, Path] = "config/app.yaml",
                    environ: Optional[Dict[str, str]] = None) -> AppConfig:
    """
    Load, validate and build app.yaml.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: On malformed YAML or schema violations
    """
    file_path = Path(path)
    try:
        raw = load_yaml_file(file_path)
    except yaml.YAMLError as e:
        raise ValueError(f"app.yaml: Invalid YAML - {e}") from e

    app_config = build_app_config(raw, environ)
    logger.info(f"✅ {file_path.name} validation passed")
    return app_config


def bot_config_from_payload(payload: Any, base: Optional[BotConfig] = None) -> BotConfig:
    """
    Build a BotConfig from an operator JSON body.

    Fields missing from the body keep their value from `base` (or the
    defaults), so a partial update is accepted.

    Raises:
        ValueError: listing every validation error
    """
    if not isinstance(payload, dict):
        raise ValueError(f"config body must be a JSON object, got {type(payload).__name__}")

    current = (base or BotConfig()).to_dict()
    known = set(BotConfigPayload.model_fields)
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"Unknown config field(s): {', '.join(unknown)}")

    # A masked secret echoed back from GET /config keeps the stored value
    current.update({
        key: value for key, value in payload.items()
        if not (key in BotConfig.SECRET_FIELDS and isinstance(value, str)
                and value.startswith(SECRET_MASK_PREFIX))
    })
    try:
        validated = BotConfigPayload(**{k: v for k, v in current.items() if k in known})
    except ValidationError as e:
        raise ValueError("; ".join(_format_validation_errors(e))) from e
    return BotConfig(**validated.model_dump())


if __name__ == "__main__":
    """Run validation from command line"""
    import sys

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    config_path = sys.argv[1] if len(sys.argv) > 1 else "config/app.yaml"

    try:
        load_app_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        print(f"\n❌ Configuration Validation Failed:\n\n{e}\n")
        sys.exit(1)
    print("\n✅ Configuration is valid!\n")
    sys.exit(0)
