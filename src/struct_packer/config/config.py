"""Configuration management for the struct packer."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

OUTPUT_FORMATS = ("text", "json")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


@dataclass
class Config:
    """Configuration for a struct packer run."""

    input_path: Optional[Path] = None
    output_dir: Optional[Path] = None
    profile_name: Optional[str] = None
    verbose: bool = False
    log_dir: Optional[Path] = None
    workers: Optional[int] = None
    repack: bool = False
    preserve_groups: bool = False
    cache_line_hint: bool = False
    check_unions: bool = False
    output_format: str = "text"

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from environment variables or .env file.

        Args:
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config object
        """
        if env_path is None:
            env_path = Path.cwd() / ".env"

        if env_path.exists():
            from dotenv import load_dotenv

            load_dotenv(env_path)

        input_str = os.getenv("STRUCT_PACKER_INPUT")
        output_str = os.getenv("STRUCT_PACKER_OUTPUT_DIR")
        log_dir_str = os.getenv("STRUCT_PACKER_LOG_DIR")
        workers_str = os.getenv("STRUCT_PACKER_WORKERS")

        workers = None
        if workers_str:
            try:
                workers = int(workers_str)
            except ValueError:
                raise ValueError(
                    f"STRUCT_PACKER_WORKERS must be an integer, got '{workers_str}'"
                ) from None

        return cls(
            input_path=Path(input_str) if input_str else None,
            output_dir=Path(output_str) if output_str else None,
            profile_name=os.getenv("STRUCT_PACKER_PROFILE") or None,
            verbose=_env_bool("VERBOSE"),
            log_dir=Path(log_dir_str) if log_dir_str else None,
            workers=workers,
            repack=_env_bool("STRUCT_PACKER_REPACK"),
            output_format=os.getenv("STRUCT_PACKER_FORMAT", "text").strip().lower(),
        )

    @classmethod
    def from_args(
        cls,
        input_path: Optional[Path] = None,
        output_dir: Optional[Path] = None,
        profile_name: Optional[str] = None,
        verbose: Optional[bool] = None,
        workers: Optional[int] = None,
        repack: Optional[bool] = None,
        preserve_groups: Optional[bool] = None,
        cache_line_hint: Optional[bool] = None,
        check_unions: Optional[bool] = None,
        output_format: Optional[str] = None,
        env_path: Optional[Path] = None,
    ) -> "Config":
        """
        Create configuration from explicit arguments, falling back to environment.

        Flags only override the environment when they are set, so
        `--repack` turns repacking on but its absence leaves the
        environment's choice alone.

        Returns:
            Config object
        """
        config = cls.from_env(env_path)

        if input_path is not None:
            config.input_path = input_path
        if output_dir is not None:
            config.output_dir = output_dir
        if profile_name is not None:
            config.profile_name = profile_name
        if verbose:
            config.verbose = True
        if workers is not None:
            config.workers = workers
        if repack:
            config.repack = True
        if preserve_groups:
            config.preserve_groups = True
        if cache_line_hint:
            config.cache_line_hint = True
        if check_unions:
            config.check_unions = True
        if output_format is not None:
            config.output_format = output_format.lower()

        # Group constraints only mean something when reordering
        if config.preserve_groups or config.cache_line_hint:
            config.repack = True

        return config

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.input_path is None:
            raise ValueError("No input file given (argument or STRUCT_PACKER_INPUT)")

        if not self.input_path.exists():
            raise ValueError(f"Input file not found: {self.input_path}")

        if not self.input_path.is_file():
            raise ValueError(f"Not a file: {self.input_path}")

        if self.workers is not None and self.workers < 1:
            raise ValueError(f"Worker count must be at least 1, got {self.workers}")

        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unknown output format '{self.output_format}' "
                f"(expected one of: {', '.join(OUTPUT_FORMATS)})"
            )

    def ensure_output_dir(self) -> None:
        """Create the output directory if one is configured."""
        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)
