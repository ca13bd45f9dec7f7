"""
Configuration management for pg_fixpoint.

Supports:
- TOML config files
- Environment variables
- Command-line overrides
- Sensible defaults

Priority (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Config file
4. Defaults
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Mapping

try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Fallback for older Python
    except ImportError:
        tomllib = None


# Default config file locations (searched in order)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / "pg_fixpoint.toml",
    Path.cwd() / "fixpoint.toml",
    Path.home() / ".config" / "pg_fixpoint" / "config.toml",
]


@dataclass
class DatabaseConfig:
    """Database connection configuration."""
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    name: str = "postgres"

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for psycopg2.connect()."""
        kwargs = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "dbname": self.name,
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs


@dataclass
class StorageConfig:
    """Where fixpoint files live."""
    dir: str = "tests/fixpoints"


@dataclass
class CaptureConfig:
    """What gets captured from the database."""
    schema: str = "public"
    exclude_tables: List[str] = field(default_factory=list)
    order_by_primary_key: bool = True


@dataclass
class CompareConfig:
    """Comparison defaults."""
    ignored_columns: List[str] = field(default_factory=lambda: ["updated_at", "created_at"])


@dataclass
class RestoreConfig:
    """Restore behaviour."""
    reset_sequences: bool = True


@dataclass
class OutputConfig:
    """Output configuration."""
    quiet: bool = False
    log_level: str = "WARNING"


@dataclass
class Config:
    """Main configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    compare: CompareConfig = field(default_factory=CompareConfig)
    restore: RestoreConfig = field(default_factory=RestoreConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Source tracking
    _config_file: Optional[Path] = None

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """
        Load configuration from file and environment.

        Args:
            config_path: Explicit path to config file. If None, searches default locations.
            environ: Environment to read overrides from (defaults to os.environ)

        Returns:
            Config instance with loaded values
        """
        config = cls()

        # Find config file
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            path = cls._find_config_file()

        if path:
            config = cls._load_from_file(path)
            config._config_file = path

        return config.override_from_env(os.environ if environ is None else environ)

    @classmethod
    def _find_config_file(cls) -> Optional[Path]:
        """Find config file in default locations."""
        for path in CONFIG_SEARCH_PATHS:
            if path.exists():
                return path
        return None

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load config from TOML file."""
        if tomllib is None:
            raise ImportError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        # Database
        if "database" in data:
            db = data["database"]
            config.database = DatabaseConfig(
                host=db.get("host", config.database.host),
                port=db.get("port", config.database.port),
                user=db.get("user", config.database.user),
                password=db.get("password", config.database.password),
                name=db.get("name", config.database.name),
            )

        # Storage
        if "storage" in data:
            config.storage = StorageConfig(
                dir=data["storage"].get("dir", config.storage.dir),
            )

        # Capture
        if "capture" in data:
            cap = data["capture"]
            config.capture = CaptureConfig(
                schema=cap.get("schema", config.capture.schema),
                exclude_tables=list(cap.get("exclude_tables", config.capture.exclude_tables)),
                order_by_primary_key=cap.get("order_by_primary_key", config.capture.order_by_primary_key),
            )

        # Compare
        if "compare" in data:
            config.compare = CompareConfig(
                ignored_columns=list(data["compare"].get("ignored_columns", config.compare.ignored_columns)),
            )

        # Restore
        if "restore" in data:
            config.restore = RestoreConfig(
                reset_sequences=data["restore"].get("reset_sequences", config.restore.reset_sequences),
            )

        # Output
        if "output" in data:
            out = data["output"]
            config.output = OutputConfig(
                quiet=out.get("quiet", config.output.quiet),
                log_level=out.get("log_level", config.output.log_level),
            )

        return config

    def override_from_env(self, environ: Mapping[str, str]) -> "Config":
        """Override config values from libpq-style environment variables."""
        if environ.get("PGHOST"):
            self.database.host = environ["PGHOST"]
        if environ.get("PGPORT"):
            self.database.port = int(environ["PGPORT"])
        if environ.get("PGUSER"):
            self.database.user = environ["PGUSER"]
        if environ.get("PGPASSWORD"):
            self.database.password = environ["PGPASSWORD"]
        if environ.get("PGDATABASE"):
            self.database.name = environ["PGDATABASE"]
        if environ.get("FIXPOINT_DIR"):
            self.storage.dir = environ["FIXPOINT_DIR"]
        return self

    def override_from_args(self, args) -> "Config":
        """
        Override config values from argparse namespace.

        Args with value None are ignored (keeping config file values).
        """
        # Database overrides
        if getattr(args, "host", None):
            self.database.host = args.host
        if getattr(args, "port", None):
            self.database.port = args.port
        if getattr(args, "user", None):
            self.database.user = args.user
        if getattr(args, "password", None):
            self.database.password = args.password
        if getattr(args, "database", None):
            self.database.name = args.database

        # Storage overrides
        if getattr(args, "dir", None):
            self.storage.dir = args.dir

        # Output overrides
        if getattr(args, "quiet", None):
            self.output.quiet = args.quiet
        if getattr(args, "verbose", None):
            self.output.log_level = "DEBUG"

        return self

    def validate(self) -> list:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.database.host:
            errors.append("Database host is required")
        if not self.database.user:
            errors.append("Database user is required")
        if not self.database.name:
            errors.append("Database name is required")
        if not 0 < self.database.port < 65536:
            errors.append(f"Invalid database port: {self.database.port}")

        if not self.storage.dir:
            errors.append("Fixpoint directory is required")
        if not self.capture.schema:
            errors.append("Capture schema is required")

        if self.output.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Unknown log level: {self.output.log_level}")

        return errors

    def summary(self, include_config_path: bool = True) -> str:
        """Generate human-readable config summary."""
        lines = []

        if include_config_path:
            if self._config_file:
                lines.append(f"Config: {self._config_file}")
            else:
                lines.append("Config: (defaults)")

        lines.append(f"Database: {self.database.user}@{self.database.host}:{self.database.port}/{self.database.name}")
        lines.append(f"Fixpoints: {self.storage.dir}")

        excluded = ", ".join(self.capture.exclude_tables) or "none"
        lines.append(f"Capture: schema {self.capture.schema}, excluded tables: {excluded}")
        lines.append(f"Ignored columns: {', '.join(self.compare.ignored_columns) or 'none'}")

        return "\n".join(lines)
