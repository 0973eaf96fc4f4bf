"""
Pydantic schemas for the vault client.

Defines the validated shapes for:
- Retry policies (client default and per-call overrides)
- Login options and the auth block returned by a login
- Secret references accepted by ``watch`` and the secret read response

Every model is validated through ``parse_model`` so that pydantic errors
surface as ``libs.vault.exceptions.ValidationError`` before any network call.
"""

import re
from collections.abc import Mapping
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator

from libs.vault.exceptions import ValidationError

ROOT_ADDRESS = "."

# Relative URI path: optional leading slash, unreserved/sub-delim characters only.
_SOURCE_PATH_PATTERN = re.compile(r"^/?[A-Za-z0-9._~!$&'()*+,;=:@%-]+(/[A-Za-z0-9._~!$&'()*+,;=:@%-]+)*/?$")

_ModelT = TypeVar("_ModelT", bound=BaseModel)


def parse_model(model: type[_ModelT], value: Any, what: str) -> _ModelT:
    """Validate ``value`` against ``model``, raising the client's ValidationError."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid {what}: {exc.error_count()} validation error(s)",
            errors=[
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in exc.errors()
            ],
        ) from exc


# ==============================================================================
# Retry Policy
# ==============================================================================


class RetryPolicy(BaseModel):
    """Exponential backoff configuration. Delays are in seconds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int | None = Field(
        default=10, ge=0, description="Retries after the first attempt; None retries forever"
    )
    min_delay: float = Field(default=1.0, gt=0, description="Delay before the first retry")
    max_delay: float = Field(default=10.0, gt=0, description="Upper bound for any delay")
    backoff_factor: float = Field(default=2.0, ge=1, description="Growth factor per retry")
    jitter: bool = Field(default=False, description="Randomize delays between min and current")

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryPolicy":
        if self.max_delay < self.min_delay:
            raise ValueError("max_delay must be greater than or equal to min_delay")
        return self

    def merged(self, overrides: "RetryPolicy | Mapping[str, Any] | None") -> "RetryPolicy":
        """Return a copy with the explicitly set fields of ``overrides`` applied."""
        if overrides is None:
            return self
        if isinstance(overrides, RetryPolicy):
            changes = overrides.model_dump(exclude_unset=True)
        else:
            changes = dict(overrides)
        return parse_model(RetryPolicy, {**self.model_dump(), **changes}, "retry policy")


# ==============================================================================
# Login
# ==============================================================================


class LoginOptions(BaseModel):
    """Options for one login; retained by the client for silent renewal."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    backend_name: str = Field(..., min_length=1)
    backend_options: dict[str, Any]
    retry_policy: RetryPolicy | None = None


class AuthResponse(BaseModel):
    """The ``auth`` block of a successful login response."""

    model_config = ConfigDict(extra="allow")

    client_token: str = Field(..., min_length=1)
    lease_duration: StrictInt = Field(..., ge=0)
    accessor: str | None = None
    policies: list[str] = Field(default_factory=list)
    renewable: bool = False
    metadata: dict[str, Any] | None = None

    @field_validator("client_token")
    @classmethod
    def _reject_blank_token(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("client_token must not be blank")
        return v


# ==============================================================================
# Secrets
# ==============================================================================


class SecretRef(BaseModel):
    """Where a secret lives remotely (source_path) and locally (address)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_path: str
    address: str | None = None

    @field_validator("source_path")
    @classmethod
    def _check_source_path(cls, v: str) -> str:
        if not _SOURCE_PATH_PATTERN.match(v):
            raise ValueError("source_path must be a relative URI path")
        if ".." in v.split("/"):
            raise ValueError("source_path must not contain '..' segments")
        return v

    @field_validator("address")
    @classmethod
    def _check_address(cls, v: str | None) -> str | None:
        if v is None or v == ROOT_ADDRESS:
            return v
        if not v or any(not segment for segment in v.split(".")):
            raise ValueError("address must be '.' or a dotted path of non-empty segments")
        return v

    @model_validator(mode="before")
    @classmethod
    def _from_path_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"source_path": data}
        return data

    @property
    def target(self) -> str:
        """The store address this secret is cached under."""
        return self.address if self.address is not None else self.source_path

    @property
    def is_root(self) -> bool:
        return self.address == ROOT_ADDRESS


class SecretResponse(BaseModel):
    """Body of a secret read."""

    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] = Field(default_factory=dict)
    lease_duration: int = Field(default=0, ge=0)
    lease_id: str | None = None
    renewable: bool = False

    @field_validator("data", mode="before")
    @classmethod
    def _null_data_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v


def parse_secret_refs(refs: Any) -> list[SecretRef]:
    """
    Validate one ref or a list of refs; any invalid entry fails them all.

    Each address may appear once per batch: a second ref for the same address
    would supersede the first fetch and share its renewal.
    """
    items = list(refs) if isinstance(refs, list | tuple) else [refs]
    if not items:
        raise ValidationError("Invalid secret refs: at least one secret is required")

    parsed: list[SecretRef] = []
    seen: set[str] = set()
    errors: list[dict[str, Any]] = []
    for index, item in enumerate(items):
        try:
            ref = parse_model(SecretRef, item, "secret ref")
        except ValidationError as exc:
            errors.extend({**err, "loc": [index, *err["loc"]]} for err in exc.errors)
            continue
        if ref.target in seen:
            errors.append(
                {
                    "loc": [index, "address"],
                    "msg": f"address '{ref.target}' appears more than once in the batch",
                    "type": "duplicate_address",
                }
            )
        seen.add(ref.target)
        parsed.append(ref)
    if errors:
        raise ValidationError(
            f"Invalid secret refs: {len(errors)} validation error(s)",
            errors=errors,
        )
    return parsed
