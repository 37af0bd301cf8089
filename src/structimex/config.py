"""
Settings and logging setup.

Settings live in a small YAML document:

    import_unknown_attributes: false
    strict: false
    export_dir: /var/tmp/structimex
    temp_dir: /var/tmp/structimex/uploads
    surveys:
      123456:
        import_unknown_attributes: true

Top-level switches are defaults; entries under "surveys" override them
for one survey. for_survey() resolves the effective values.
"""

import logging
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

SURVEY_OPTIONS = ("import_unknown_attributes", "strict")


@dataclass(frozen=True)
class SurveySettings:
    """
    Effective settings for one survey.

    Properties:
        import_unknown_attributes: Store attribute names missing from the
            schema verbatim instead of dropping them with a warning
        strict: Treat save failures as fatal and unreadable attribute JSON
            as a row error
    """

    import_unknown_attributes: bool = False
    strict: bool = False


@dataclass
class ImexSettings:
    import_unknown_attributes: bool = False
    strict: bool = False
    export_dir: str = ""
    temp_dir: str = ""
    surveys: Dict[int, Dict[str, bool]] = field(default_factory=dict)

    def for_survey(self, sid: Optional[int]) -> SurveySettings:
        overrides = self.surveys.get(sid, {}) if sid is not None else {}
        return SurveySettings(
            import_unknown_attributes=overrides.get(
                "import_unknown_attributes", self.import_unknown_attributes
            ),
            strict=overrides.get("strict", self.strict),
        )

    def set_survey_option(self, sid: int, name: str, value: bool) -> None:
        """
        Override one option for a survey.

        Raises:
            ConfigError: If the option is unknown or value is not a bool
        """
        _check_option(name, value, f"surveys.{sid}")
        self.surveys.setdefault(sid, {})[name] = value

    def export_path(self) -> Path:
        return Path(self.export_dir) if self.export_dir else Path(tempfile.gettempdir())

    def temp_path(self) -> Path:
        return Path(self.temp_dir) if self.temp_dir else Path(tempfile.gettempdir())

    # ========================================================================
    # (De)serialization
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "import_unknown_attributes": self.import_unknown_attributes,
            "strict": self.strict,
            "export_dir": self.export_dir,
            "temp_dir": self.temp_dir,
            "surveys": {sid: dict(options) for sid, options in self.surveys.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ImexSettings":
        """
        Build settings from a plain dict.

        Raises:
            ConfigError: On unknown keys or values of the wrong type
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("Settings document must be a mapping")
        known = {"import_unknown_attributes", "strict", "export_dir", "temp_dir", "surveys"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")

        settings = cls()
        for name in SURVEY_OPTIONS:
            if name in data:
                _check_option(name, data[name], "settings")
                setattr(settings, name, data[name])
        for name in ("export_dir", "temp_dir"):
            value = data.get(name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ConfigError(f"{name} must be a string")
            setattr(settings, name, value)

        surveys = data.get("surveys") or {}
        if not isinstance(surveys, dict):
            raise ConfigError("surveys must be a mapping of survey id to options")
        for sid, options in surveys.items():
            try:
                sid = int(sid)
            except (TypeError, ValueError):
                raise ConfigError(f"Invalid survey id '{sid}'") from None
            if not isinstance(options, dict):
                raise ConfigError(f"Options for survey {sid} must be a mapping")
            for name, value in options.items():
                settings.set_survey_option(sid, name, value)
        return settings

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_yaml(cls, text: str) -> "ImexSettings":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid settings YAML: {e}") from e
        return cls.from_dict(data)


def _check_option(name: str, value: Any, where: str) -> None:
    if name not in SURVEY_OPTIONS:
        raise ConfigError(f"Unknown option '{name}' in {where}")
    if not isinstance(value, bool):
        raise ConfigError(f"{where}.{name} must be true or false")


def load_settings(path) -> ImexSettings:
    """Read settings from a YAML file. A missing file gives the defaults."""
    path = Path(path)
    if not path.exists():
        return ImexSettings()
    return ImexSettings.from_yaml(path.read_text(encoding="utf-8"))


def save_settings(settings: ImexSettings, path) -> None:
    Path(path).write_text(settings.to_yaml(), encoding="utf-8")


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, stream=None) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Intended for scripts; libraries embedding structimex should configure
    logging themselves. Calling it twice does not add a second handler.
    """
    package_logger = logging.getLogger("structimex")
    package_logger.setLevel(level)
    if not any(getattr(h, "_structimex", False) for h in package_logger.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._structimex = True
        package_logger.addHandler(handler)
    return package_logger


__all__ = [
    "SurveySettings",
    "ImexSettings",
    "load_settings",
    "save_settings",
    "configure_logging",
    "SURVEY_OPTIONS",
]
