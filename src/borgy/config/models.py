"""Configuration models describing Borgy settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BorgyBaseModel(BaseModel):
    """Shared configuration for Borgy Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class StoreSettings(BorgyBaseModel):
    """Object store connection and layout options.

    Attributes:
        endpoint: Hostname of the MinIO/S3 endpoint.
        port: Port of the endpoint.
        use_ssl: Whether to connect over TLS.
        access_key: Access key used to authenticate.
        secret_key: Secret key used to authenticate.
        bucket: Bucket holding uploaded documents.
        region: Region used when the bucket has to be created.
        organized_prefix: Reserved key segment under which organized objects live.
        metadata_prefix: Key prefix holding Borgy's own metadata documents.
        recursive: Whether listings descend into nested key prefixes.
    """

    endpoint: str = "localhost"
    port: int = 9000
    use_ssl: bool = False
    access_key: str = "minioadmin"
    secret_key: str = "minioadmin"
    bucket: str = "nextjs-uploads"
    region: str = "us-east-1"
    organized_prefix: str = "_organized"
    metadata_prefix: str = "_metadata"
    recursive: bool = True

    @field_validator("organized_prefix", "metadata_prefix")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        stripped = value.strip().strip("/")
        if not stripped:
            raise ValueError("prefix must not be empty")
        return stripped


class LLMSettings(BorgyBaseModel):
    """Language-model settings for the classifier gateway.

    Attributes:
        provider: Backend used to classify filenames (`none` disables it).
        model: Model name to target when issuing requests.
        base_url: Optional endpoint override for the backend.
        api_key: Optional credential for hosted providers.
        temperature: Sampling temperature for generative calls.
        max_tokens: Maximum number of tokens in responses.
        timeout_seconds: Request timeout after which the call counts as failed.
        retries: Extra attempts made after a failed classification call.
        response_format: Whether the backend answers with JSON or `name: folder` lines.
        domain: Short description of the document collection used in the prompt.
    """

    provider: Literal["openai", "ollama", "none"] = "openai"
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 2_000
    timeout_seconds: float = 60.0
    retries: int = Field(default=0, ge=0)
    response_format: Literal["json", "text"] = "json"
    domain: str = "Real Estate Deal"


class OrganizationOptions(BorgyBaseModel):
    """Settings that govern suggestion building and plan application.

    Attributes:
        default_folder: Folder used when nothing else matches.
        canonicalize_folders: Map low-quality folder tokens to canonical labels.
        group_by_prefix: Force files sharing a name prefix into one folder.
        prefix_delimiter: Delimiter that ends a filename prefix.
        conflict_resolution: Strategy applied when two objects target the same key.
        apply_mode: `sequential` copy+delete per entry, or copy everything first.
    """

    default_folder: str = "Miscellaneous"
    canonicalize_folders: bool = True
    group_by_prefix: bool = True
    prefix_delimiter: str = "_"
    conflict_resolution: Literal["append_number", "skip", "overwrite"] = "append_number"
    apply_mode: Literal["sequential", "two_phase"] = "sequential"


class HistorySettings(BorgyBaseModel):
    """Options for the organization history document.

    Attributes:
        filename: Name of the history document under the metadata prefix.
        verify_version: Compare version tokens before writing the document.
        max_retries: Read-modify-write attempts made after a version conflict.
    """

    filename: str = "organization_history.json"
    verify_version: bool = True
    max_retries: int = Field(default=3, ge=0)


class UploadOptions(BorgyBaseModel):
    """Options for bulk uploads.

    Attributes:
        include_hidden: Whether dot-files are uploaded.
        key_prefix: Prefix prepended to every uploaded key.
    """

    include_hidden: bool = False
    key_prefix: str = ""


class LoggingSettings(BorgyBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; rotation applies when set.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


class CLIOptions(BorgyBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
        history_limit: Default number of history batches to display.
    """

    quiet_default: bool = False
    summary_default: bool = False
    history_limit: int = 5


class FallbackRule(BorgyBaseModel):
    """User-defined fallback rule evaluated before the built-in table.

    Attributes:
        match: Substrings that select the rule (case-insensitive).
        folder: Folder label assigned when any substring matches.
    """

    match: List[str]
    folder: str


class BorgyConfig(BorgyBaseModel):
    """Top-level configuration struct for Borgy.

    Attributes:
        store: Object store settings.
        llm: Language model settings.
        organization: Suggestion and apply settings.
        history: History document settings.
        upload: Bulk upload settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
        rules: Extra fallback classification rules.
    """

    store: StoreSettings = Field(default_factory=StoreSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    organization: OrganizationOptions = Field(default_factory=OrganizationOptions)
    history: HistorySettings = Field(default_factory=HistorySettings)
    upload: UploadOptions = Field(default_factory=UploadOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)
    rules: List[FallbackRule] = Field(default_factory=list)

    @property
    def history_key(self) -> str:
        """Return the object key of the organization history document."""
        return f"{self.store.metadata_prefix}/{self.history.filename}"


__all__ = [
    "BorgyBaseModel",
    "StoreSettings",
    "LLMSettings",
    "OrganizationOptions",
    "HistorySettings",
    "UploadOptions",
    "LoggingSettings",
    "CLIOptions",
    "FallbackRule",
    "BorgyConfig",
]
