"""Approval policy configuration loaded from YAML."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_TERMINAL_IMPACT_LEVELS = frozenset({"3A", "3B", "3C"})
DEFAULT_MAX_CHAIN_DEPTH = 10


def _default_policy_path() -> Path | None:
    """Return the default approval policy configuration path if present."""

    for parent in Path(__file__).resolve().parents:
        candidate = parent / "config" / "approval_policy.yaml"
        if candidate.exists():
            return candidate
    return None


def normalize_email(value: str | None) -> str:
    """Trim and lower-case an email address for comparison."""

    return (value or "").strip().lower()


class ApprovalPolicy(BaseModel):
    """Business policy that shapes approval chains and notifications."""

    terminal_impact_levels: frozenset[str] = Field(
        default=DEFAULT_TERMINAL_IMPACT_LEVELS,
        description="Impact levels authorised to give the last manager sign-off",
    )
    max_chain_depth: int = Field(
        default=DEFAULT_MAX_CHAIN_DEPTH,
        ge=1,
        le=DEFAULT_MAX_CHAIN_DEPTH,
        description="Hard cap on approval chain length",
    )
    strict_directory: bool = Field(
        default=False,
        description="Fail submission when a manager record is missing mid-chain",
    )
    poc_emails: frozenset[str] = Field(
        default_factory=frozenset,
        description="Travel coordinators allowed to give final approval",
    )
    vendor_emails: frozenset[str] = Field(
        default_factory=frozenset,
        description="Vendors allowed to fulfil approved requests",
    )
    notification_override_recipient: str | None = Field(
        default=None,
        description="Redirect every notification to this address (test setups)",
    )

    model_config = {"frozen": True}

    @field_validator("terminal_impact_levels", mode="before")
    @classmethod
    def _normalize_levels(cls, value: object) -> object:
        if value is None:
            return DEFAULT_TERMINAL_IMPACT_LEVELS
        if isinstance(value, str):
            value = value.split(",")
        return frozenset(str(level).strip().upper() for level in value if str(level).strip())

    @field_validator("poc_emails", "vendor_emails", mode="before")
    @classmethod
    def _normalize_emails(cls, value: object) -> object:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = value.split(",")
        return frozenset(normalize_email(str(email)) for email in value if str(email).strip())

    @field_validator("notification_override_recipient", mode="before")
    @classmethod
    def _normalize_override(cls, value: object) -> object:
        if value is None:
            return None
        return normalize_email(str(value)) or None

    def is_terminal_level(self, impact_level: str | None) -> bool:
        """Return True when a manager at this level is the last required approver."""

        return (impact_level or "").strip().upper() in self.terminal_impact_levels

    @classmethod
    def from_yaml(cls, content: str) -> ApprovalPolicy:
        """Load an approval policy from YAML content."""

        data = yaml.safe_load(content) or {}
        if not isinstance(data, dict):
            raise ValueError("Approval policy configuration must be a mapping")
        raw_policy = data.get("approval_policy", data)
        return cls.model_validate(raw_policy)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> ApprovalPolicy:
        """Load an approval policy from a YAML file."""

        target_path = Path(path) if path is not None else _default_policy_path()

        if target_path is None:
            raise FileNotFoundError("No approval policy file found")

        content = target_path.read_text(encoding="utf-8")
        return cls.from_yaml(content)

    @classmethod
    def from_environment(
        cls,
        env_var: str = "APPROVAL_POLICY",
        override_env_var: str = "NOTIFICATION_OVERRIDE_RECIPIENT",
    ) -> ApprovalPolicy:
        """Load an approval policy from an environment variable containing YAML."""

        content = os.getenv(env_var)
        if not content:
            raise ValueError(f"Environment variable '{env_var}' is not set or empty")
        policy = cls.from_yaml(content)
        override = os.getenv(override_env_var)
        if override:
            policy = policy.model_copy(
                update={"notification_override_recipient": normalize_email(override)}
            )
        return policy
