"""
Configuration: model presets plus workflow scheduling settings.

Loading priority:
  1. Project dir .echoflow.yml
  2. Git root .echoflow.yml
  3. Global ~/.echoflow/config.yml

``.env`` files (global, then project) are read first; ECHOFLOW_* environment
variables override whatever the YAML said.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

CONFIG_DIR = Path.home() / ".echoflow"
CONFIG_FILE = CONFIG_DIR / "config.yml"
PROJECT_CONFIG_NAME = ".echoflow.yml"

EXECUTION_MODES = {"sequential", "parallel", "hybrid"}

# (valid, coerced, error). ``coerced`` is None when the input is unusable;
# range validators return the clamped value instead.
Validation = Tuple[bool, Any, str]


# ── Field registry ──


@dataclass
class ConfigFieldSpec:
    """One YAML key, the Config attribute it fills, and how to check it."""
    key: str
    field_name: str
    description: str
    value_type: str  # "str", "int", "float", "bool"
    default: Any
    validator: Optional[Callable[[Any], Validation]] = None


def _validate_int_range(value: Any, min_val: int, max_val: int) -> Validation:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return False, None, "Must be an integer"
    if not min_val <= parsed <= max_val:
        return False, max(min_val, min(max_val, parsed)), f"Must be between {min_val} and {max_val}"
    return True, parsed, ""


def _validate_float_range(value: Any, min_val: float, max_val: float) -> Validation:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return False, None, "Must be a number"
    if not min_val <= parsed <= max_val:
        return False, float(max(min_val, min(max_val, parsed))), f"Must be between {min_val:g} and {max_val:g}"
    return True, parsed, ""


def _validate_enum(value: Any, valid_values: set) -> Validation:
    choice = str(value).strip().lower()
    if choice not in valid_values:
        return False, None, f"Must be one of: {', '.join(sorted(valid_values))}"
    return True, choice, ""


_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")


def _validate_bool(value: Any) -> Validation:
    if isinstance(value, bool):
        return True, value, ""
    if isinstance(value, (int, float)):
        return True, bool(value), ""
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True, True, ""
        if word in _FALSE_WORDS:
            return True, False, ""
    return False, None, "Must be true/false, yes/no, on/off, or 1/0"


CONFIG_FIELDS: Dict[str, ConfigFieldSpec] = {
    spec.key: spec for spec in (
        ConfigFieldSpec("active-model", "active_model",
                        "Model preset used by task invocations", "str", "local"),
        ConfigFieldSpec("max-parallel", "max_parallel",
                        "Maximum tasks run concurrently per round (hybrid mode)", "int", 3,
                        lambda v: _validate_int_range(v, 1, 32)),
        ConfigFieldSpec("task-timeout", "task_timeout",
                        "Per-task timeout in seconds (0 = no timeout)", "float", 300.0,
                        lambda v: _validate_float_range(v, 0, 3600)),
        ConfigFieldSpec("execution-mode", "execution_mode",
                        "Default execution mode: sequential, parallel, or hybrid", "str", "hybrid",
                        lambda v: _validate_enum(v, EXECUTION_MODES)),
        ConfigFieldSpec("synthesis-required", "synthesis_required",
                        "Run a synthesis step over multi-task results", "bool", True,
                        _validate_bool),
        ConfigFieldSpec("verbose", "verbose",
                        "Enable verbose (INFO) logging", "bool", False,
                        _validate_bool),
        ConfigFieldSpec("log-file", "log_file",
                        "Log file path, 'default', or 'off'", "str", "default"),
    )
}

# Environment variable → config key
ENV_OVERRIDES = {
    "ECHOFLOW_MODEL": "active-model",
    "ECHOFLOW_MAX_PARALLEL": "max-parallel",
    "ECHOFLOW_VERBOSE": "verbose",
    "ECHOFLOW_EXECUTION_MODE": "execution-mode",
}


def validate_config_value(key: str, value: Any) -> Validation:
    """
    Validate a configuration value.

    Returns:
        (is_valid, coerced_value, error_message)
    """
    spec = CONFIG_FIELDS.get(key)
    if spec is None:
        return False, value, f"Unknown configuration key: {key}"
    if spec.validator:
        return spec.validator(value)
    if value is None:
        return False, None, "Value required"
    return True, str(value), ""


def coerce_config_value(key: str, value: Any, fallback: Any = None) -> Any:
    """Best usable value for ``key``: the validated value, a clamped one, or ``fallback``.

    ``fallback`` defaults to the field's default.
    """
    _, coerced, _ = validate_config_value(key, value)
    if coerced is not None:
        return coerced
    return CONFIG_FIELDS[key].default if fallback is None else fallback


# ── Model presets ──

_PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "cloudflare": "CLOUDFLARE_API_KEY",
}


@dataclass
class ModelPreset:
    name: str
    provider: str
    model: str
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 4096
    context_window: int = 128000
    description: str = ""

    @classmethod
    def from_dict(cls, name: str, data: Optional[dict]) -> "ModelPreset":
        data = data or {}
        return cls(
            name=name,
            provider=data.get("provider", "openai"),
            model=data.get("model", "openai/gpt-4o-mini"),
            api_base=data.get("api-base"),
            api_key=data.get("api-key"),
            api_key_env=data.get("api-key-env"),
            temperature=data.get("temperature", 0.0),
            max_tokens=data.get("max-tokens", 4096),
            context_window=data.get("context-window", 128000),
            description=data.get("description", ""),
        )

    def to_dict(self) -> dict:
        data = {
            "provider": self.provider,
            "model": self.model,
            "description": self.description,
            "temperature": self.temperature,
            "max-tokens": self.max_tokens,
            "context-window": self.context_window,
        }
        for key, value in (("api-base", self.api_base), ("api-key", self.api_key),
                           ("api-key-env", self.api_key_env)):
            if value:
                data[key] = value
        return data

    def resolve_api_key(self) -> Optional[str]:
        """Explicit key, then the named env var, then the provider's usual env var."""
        if self.api_key:
            return self.api_key
        env_var = self.api_key_env or _PROVIDER_KEY_ENV.get(self.provider)
        return os.environ.get(env_var) if env_var else None

    def get_llm_kwargs(self) -> dict:
        """Keyword arguments for ``LLMAdapter``; credentials are passed, not exported."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "context_window": self.context_window,
            "api_base": self.api_base,
            "api_key": self.resolve_api_key(),
        }


def default_presets() -> Dict[str, ModelPreset]:
    return {
        "local": ModelPreset(
            name="local", provider="local", model="openai/model",
            api_base="http://localhost:8080/v1", api_key="not-needed",
            description="OpenAI-compatible server on localhost:8080",
            max_tokens=4096, context_window=32000,
        ),
        "claude-sonnet": ModelPreset(
            name="claude-sonnet", provider="anthropic",
            model="anthropic/claude-3-5-sonnet-20241022",
            description="Anthropic Claude 3.5 Sonnet",
            max_tokens=8192, context_window=200000,
        ),
        "deepseek-chat": ModelPreset(
            name="deepseek-chat", provider="deepseek",
            model="deepseek/deepseek-chat",
            description="DeepSeek V3 chat",
        ),
        "workers-ai-llama": ModelPreset(
            name="workers-ai-llama", provider="cloudflare",
            model="cloudflare/@cf/meta/llama-3.1-8b-instruct",
            description="Cloudflare Workers AI, Llama 3.1 8B",
            max_tokens=2048,
        ),
    }


_FALLBACK_PRESET = ModelPreset(
    name="default", provider="local", model="openai/model",
    api_base="http://localhost:8080/v1", api_key="not-needed",
)


# ── Config ──


@dataclass
class Config:
    active_model: str = "local"
    models: Dict[str, ModelPreset] = field(default_factory=dict)
    max_parallel: int = 3
    task_timeout: float = 300.0
    execution_mode: str = "hybrid"
    synthesis_required: bool = True
    verbose: bool = False
    log_file: str = "default"
    agents_config: Dict = field(default_factory=dict)  # agents: section from YAML
    project_root: Optional[str] = None
    _config_source: str = ""

    @classmethod
    def load(cls, project_dir: str = ".") -> "Config":
        """Build the effective config for ``project_dir``. Never writes to disk."""
        config = cls()
        project_path = Path(project_dir).resolve()

        for env_file in (CONFIG_DIR / ".env", project_path / ".env"):
            if env_file.exists():
                load_dotenv(env_file, override=False)

        source = cls.find_config_file(project_path)
        if source is not None:
            config._load_yaml(source)
        if not config.models:
            config.models = default_presets()
            if config.active_model not in config.models:
                config.active_model = "local"

        config._apply_env()
        config.project_root = str(project_path)
        return config

    @staticmethod
    def find_config_file(project_path: Path) -> Optional[Path]:
        candidates = [project_path / PROJECT_CONFIG_NAME]
        git_root = _find_git_root(project_path)
        if git_root and git_root != project_path:
            candidates.append(git_root / PROJECT_CONFIG_NAME)
        candidates.append(CONFIG_FILE)
        return next((c for c in candidates if c.exists()), None)

    def _load_yaml(self, filepath: Path):
        try:
            with open(filepath) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            return
        if not isinstance(data, dict):
            return

        self._config_source = str(filepath)
        for key, spec in CONFIG_FIELDS.items():
            if data.get(key) is not None:
                setattr(self, spec.field_name, coerce_config_value(key, data[key]))
        agents = data.get("agents")
        self.agents_config = agents if isinstance(agents, dict) else {}
        models = data.get("models")
        self.models = {
            name: ModelPreset.from_dict(name, entry)
            for name, entry in (models if isinstance(models, dict) else {}).items()
            if isinstance(entry, dict) or entry is None
        }

    def _apply_env(self):
        for env_var, key in ENV_OVERRIDES.items():
            raw = os.environ.get(env_var)
            if not raw:
                continue
            attr = CONFIG_FIELDS[key].field_name
            setattr(self, attr, coerce_config_value(key, raw, fallback=getattr(self, attr)))

    def save(self, filepath: Optional[str] = None):
        if filepath:
            target = Path(filepath)
        elif self._config_source:
            target = Path(self._config_source)
        else:
            target = CONFIG_FILE
        target.parent.mkdir(parents=True, exist_ok=True)

        data = {key: getattr(self, spec.field_name) for key, spec in CONFIG_FIELDS.items()}
        if self.agents_config:
            data["agents"] = self.agents_config
        data["models"] = {name: m.to_dict() for name, m in self.models.items()}

        with open(target, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        self._config_source = str(target)

    def get_active_preset(self) -> ModelPreset:
        if self.active_model in self.models:
            return self.models[self.active_model]
        return next(iter(self.models.values()), _FALLBACK_PRESET)

    def summary(self) -> dict:
        p = self.get_active_preset()
        return {
            "Active model": f"{self.active_model} → {p.model}",
            "Provider": p.provider,
            "API base": p.api_base or "(provider default)",
            "API key": "set" if p.resolve_api_key() else "not set",
            "Execution mode": self.execution_mode,
            "Max parallel": self.max_parallel,
            "Task timeout": f"{self.task_timeout:g}s" if self.task_timeout else "none",
            "Synthesis": "ON" if self.synthesis_required else "OFF",
            "Verbose": "ON" if self.verbose else "OFF",
            "Log file": self.log_file,
            "Project": self.project_root,
            "Config": self._config_source or "(defaults)",
        }

    def get_config_value(self, key: str) -> Any:
        spec = CONFIG_FIELDS.get(key)
        if spec is None:
            return None
        return getattr(self, spec.field_name, spec.default)

    def set_config_value(self, key: str, value: Any) -> Tuple[bool, str]:
        """
        Set a value in memory after validation; call ``save()`` to persist.

        Returns:
            (success, error_message)
        """
        if key == "active-model" and value not in self.models:
            return False, f"Model '{value}' not found."
        ok, coerced, error = validate_config_value(key, value)
        if not ok:
            return False, error
        setattr(self, CONFIG_FIELDS[key].field_name, coerced)
        return True, ""

    def reset_config_value(self, key: str) -> Tuple[bool, str]:
        spec = CONFIG_FIELDS.get(key)
        if spec is None:
            return False, f"Unknown configuration key: {key}"
        setattr(self, spec.field_name, spec.default)
        return True, ""

    def list_models(self) -> List[Dict]:
        return [
            {"name": name, "active": name == self.active_model, "provider": m.provider,
             "model": m.model, "api_base": m.api_base or "-",
             "key": bool(m.resolve_api_key()), "desc": m.description}
            for name, m in self.models.items()
        ]


def _find_git_root(path: Path) -> Optional[Path]:
    for candidate in (path, *path.parents):
        if (candidate / ".git").exists():
            return candidate
    return None
