from pydantic import BaseModel, Field, field_validator, model_validator

from src.components.redirects import ALLOWED_STATUS_CODES, DEFAULT_STATUS_CODE, RedirectConfig


class RedirectRules(BaseModel):
    enabled: bool = True
    default_status_code: int = DEFAULT_STATUS_CODE
    allowed_status_codes: list[int] = Field(default_factory=lambda: list(ALLOWED_STATUS_CODES))
    option_key: str = "_redirect_rules"
    excluded_path_prefixes: list[str] = Field(default_factory=list)

    @field_validator("allowed_status_codes")
    @classmethod
    def _redirect_codes_only(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("allowed_status_codes must not be empty")
        bad = [code for code in value if not 300 <= code <= 399]
        if bad:
            raise ValueError(f"not redirect status codes: {bad}")
        return value

    @field_validator("excluded_path_prefixes")
    @classmethod
    def _prefixes_are_paths(cls, value: list[str]) -> list[str]:
        for prefix in value:
            if not prefix.startswith("/"):
                raise ValueError(f"excluded path prefix must start with /: {prefix!r}")
        return value

    @model_validator(mode="after")
    def _default_is_allowed(self) -> "RedirectRules":
        if self.default_status_code not in self.allowed_status_codes:
            raise ValueError(
                f"default_status_code {self.default_status_code} is not in allowed_status_codes"
            )
        return self

    # RulesPort
    def is_enabled(self) -> bool:
        return self.enabled

    def get_default_status_code(self) -> int:
        return self.default_status_code

    def get_allowed_status_codes(self) -> tuple[int, ...]:
        return tuple(self.allowed_status_codes)

    def get_excluded_path_prefixes(self) -> tuple[str, ...]:
        return tuple(self.excluded_path_prefixes)

    def to_config(self) -> RedirectConfig:
        return RedirectConfig(
            enabled=self.enabled,
            default_status_code=self.default_status_code,
            allowed_status_codes=tuple(self.allowed_status_codes),
            excluded_path_prefixes=tuple(self.excluded_path_prefixes),
        )


class StorageRules(BaseModel):
    data_dir: str = "./data"
    db_filename: str = "redirects.db"
    busy_timeout_seconds: float = Field(default=5.0, gt=0)


class ApiRules(BaseModel):
    admin_prefix: str = "/api/admin"
    title: str = "Site Redirects API"


class Rules(BaseModel):
    redirects: RedirectRules = Field(default_factory=RedirectRules)
    storage: StorageRules = Field(default_factory=StorageRules)
    api: ApiRules = Field(default_factory=ApiRules)
