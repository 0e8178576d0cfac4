"""
YAML configuration parser for filefind.

This module loads search configuration (rules, strategy and limits) from YAML
files. It handles configuration file discovery, parsing and validation, and
reports problems as ConfigurationError.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Union
import logging
from dataclasses import dataclass

from ..errors import ConfigurationError
from ..models.config import FinderConfig, StrategyKind


logger = logging.getLogger(__name__)


@dataclass
class ConfigParseResult:
    """
    Result of configuration parsing operation.

    Attributes:
        config: The parsed and validated configuration
        warnings: List of non-fatal warnings
        config_path: Path to the configuration file used
        is_default: Whether default configuration was used
    """
    config: FinderConfig
    warnings: List[str]
    config_path: Optional[Path]
    is_default: bool


class ConfigParser:
    """
    YAML configuration parser with validation and error handling.

    A configuration file has three optional sections::

        rules:
          path: [./src]
          name: "*.py"
          size: ">= 200"
          readable?: true
        strategy: parallel
        limits:
          max_concurrent: 8
          queue_size: 1024
    """

    DEFAULT_CONFIG_NAMES = [
        '.filefind.yaml',
        '.filefind.yml',
        'filefind.yaml',
        'filefind.yml'
    ]

    KNOWN_SECTIONS = ('rules', 'strategy', 'limits')

    def __init__(self, strict_mode: bool = False):
        """
        Initialize the configuration parser.

        Args:
            strict_mode: If True, treat warnings as errors
        """
        self.strict_mode = strict_mode
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> ConfigParseResult:
        """
        Load and parse configuration from file or use defaults.

        Args:
            config_path: Path to configuration file. If None, searches for default files.

        Returns:
            ConfigParseResult containing parsed configuration and metadata

        Raises:
            ConfigurationError: If configuration is invalid or file cannot be read
        """
        if config_path:
            config_path = Path(config_path)
            if not config_path.exists():
                raise ConfigurationError(f"Configuration file not found: {config_path}")

            config_data = self._load_yaml_file(config_path)
            is_default = False
        else:
            config_path, config_data = self._find_and_load_config()
            is_default = config_data is None
            if is_default:
                config_data = {}

        warnings = self._get_parser_warnings(config_data, is_default)
        finder_config = self._build_config(config_data)
        warnings.extend(self._get_config_warnings(finder_config))

        if self.strict_mode and warnings:
            raise ConfigurationError(f"Configuration warnings in strict mode: {'; '.join(warnings)}")

        self.logger.info(f"Configuration loaded successfully from {config_path or 'defaults'}")

        return ConfigParseResult(
            config=finder_config,
            warnings=warnings,
            config_path=config_path,
            is_default=is_default
        )

    def _find_and_load_config(self) -> tuple[Optional[Path], Optional[Dict[str, Any]]]:
        """
        Find and load configuration file from default locations.

        Returns:
            Tuple of (config_path, config_data) or (None, None) if not found
        """
        search_paths = [
            Path.cwd(),
            Path.home(),
            Path.home() / '.config' / 'filefind',
        ]

        for search_path in search_paths:
            for config_name in self.DEFAULT_CONFIG_NAMES:
                config_file = search_path / config_name
                if config_file.exists() and config_file.is_file():
                    try:
                        config_data = self._load_yaml_file(config_file)
                    except ConfigurationError as e:
                        self.logger.warning(f"Failed to load {config_file}: {e}")
                        continue
                    self.logger.info(f"Found configuration file: {config_file}")
                    return config_file, config_data

        self.logger.info("No configuration file found, using defaults")
        return None, None

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Load and parse YAML file.

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed YAML data as dictionary

        Raises:
            ConfigurationError: If file cannot be read or parsed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = f.read()

            if not content.strip():
                self.logger.warning(f"Configuration file is empty: {file_path}")
                return {}

            data = yaml.safe_load(content)

            if data is None:
                return {}

            if not isinstance(data, dict):
                raise ConfigurationError(f"Configuration file must contain a YAML object, got {type(data).__name__}")

            return data

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {file_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {file_path}: {e}") from e

    def _build_config(self, config_data: Dict[str, Any]) -> FinderConfig:
        """
        Validate configuration data and build a FinderConfig.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        unknown = [key for key in config_data if key not in self.KNOWN_SECTIONS]
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        rules = config_data.get('rules') or {}
        if not isinstance(rules, dict):
            raise ConfigurationError("The 'rules' section must be a mapping")

        try:
            return FinderConfig.from_dict({
                'rules': rules,
                'strategy': config_data.get('strategy', StrategyKind.SEQUENTIAL.value),
                'limits': config_data.get('limits') or {},
            })
        except ValueError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

    def _get_parser_warnings(self, config_data: Dict[str, Any], is_default: bool) -> List[str]:
        warnings = []

        if is_default:
            warnings.append("No configuration file found, using default settings")
        elif not config_data.get('rules'):
            warnings.append("No rules configured, every entry under the current directory matches")

        return warnings

    def _get_config_warnings(self, config: FinderConfig) -> List[str]:
        """
        Get warnings about potentially problematic settings.

        Args:
            config: The parsed configuration

        Returns:
            List of warning messages
        """
        warnings = []

        if config.strategy is StrategyKind.PARALLEL and config.limits.max_concurrent <= 1:
            warnings.append("Parallel strategy with a single worker runs sequentially")

        if config.limits.max_concurrent > 64:
            warnings.append(f"Large number of workers ({config.limits.max_concurrent}) may impact performance")

        if config.rules.mindepth is not None and config.rules.maxdepth is not None \
                and config.rules.mindepth > config.rules.maxdepth:
            warnings.append("mindepth is greater than maxdepth, no entry can match")

        if not config.rules.follow and config.rules.mount is not None:
            warnings.append("Mount boundary is checked against lstat results because follow is disabled")

        return warnings

    def save_config(self, config: FinderConfig, output_path: Union[str, Path]) -> None:
        """
        Save configuration to YAML file.

        Args:
            config: Configuration to save
            output_path: Path where to save the configuration

        Raises:
            ConfigurationError: If file cannot be written
        """
        try:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)

            yaml_content = self._generate_yaml_with_comments(config.to_dict())

            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(yaml_content)

            self.logger.info(f"Configuration saved to {output_path}")

        except OSError as e:
            raise ConfigurationError(f"Cannot write configuration file {output_path}: {e}") from e

    def _generate_yaml_with_comments(self, config_dict: Dict[str, Any]) -> str:
        """
        Generate YAML content with helpful comments.

        Args:
            config_dict: Configuration dictionary

        Returns:
            YAML content with comments
        """
        lines = [
            "# filefind configuration",
            "# Rules select entries; strategy and limits control how the search runs",
            "",
        ]

        sections = [
            ("rules", "Search rules (capability checks are written as 'name?: true')"),
            ("strategy", "Execution strategy: sequential, parallel or lazy"),
            ("limits", "Parallel strategy limits")
        ]

        for section_name, comment in sections:
            if section_name in config_dict:
                lines.append(f"# {comment}")
                section_yaml = yaml.safe_dump({section_name: config_dict[section_name]},
                                              default_flow_style=False,
                                              sort_keys=False)
                lines.append(section_yaml.rstrip())
                lines.append("")

        return "\n".join(lines)

    def validate_config_file(self, config_path: Union[str, Path]) -> List[str]:
        """
        Validate a configuration file.

        Args:
            config_path: Path to configuration file

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        config_path = Path(config_path)
        if not config_path.exists():
            errors.append(f"Configuration file not found: {config_path}")
            return errors

        try:
            config_data = self._load_yaml_file(config_path)
            self._build_config(config_data)
        except ConfigurationError as e:
            errors.append(str(e))

        return errors

    def get_config_template(self) -> str:
        """
        Get a template configuration file with common options and comments.

        Returns:
            YAML template as string
        """
        template_config = {
            'rules': {
                'path': ['.'],
                'name': '*',
                'follow': True,
                'maxdepth': 10,
                'prune': r'^\.git$',
                'size': '>= 0',
                'readable?': True
            },
            'strategy': StrategyKind.SEQUENTIAL.value,
            'limits': {
                'max_concurrent': 4,
                'queue_size': 1024
            }
        }

        return self._generate_yaml_with_comments(template_config)


def load_config(config_path: Optional[Union[str, Path]] = None, strict_mode: bool = False) -> ConfigParseResult:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to configuration file (optional)
        strict_mode: Whether to treat warnings as errors

    Returns:
        ConfigParseResult containing parsed configuration

    Raises:
        ConfigurationError: If configuration is invalid
    """
    parser = ConfigParser(strict_mode=strict_mode)
    return parser.load_config(config_path)


def validate_config_file(config_path: Union[str, Path]) -> List[str]:
    """
    Convenience function to validate a configuration file.

    Args:
        config_path: Path to configuration file

    Returns:
        List of validation errors (empty if valid)
    """
    parser = ConfigParser()
    return parser.validate_config_file(config_path)


def create_config_template(output_path: Union[str, Path]) -> None:
    """
    Create a template configuration file.

    Args:
        output_path: Where to save the template

    Raises:
        ConfigurationError: If template cannot be created
    """
    parser = ConfigParser()
    template_content = parser.get_config_template()

    try:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template_content)

    except OSError as e:
        raise ConfigurationError(f"Cannot create template file {output_path}: {e}") from e
