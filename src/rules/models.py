from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str
    required_sections: list[str] = []


class SchedulingRules(BaseModel):
    """Limits applied by the scheduler service and the pending processor."""

    default_timezone: str = "America/La_Paz"
    max_batch_size: int = Field(default=500, ge=1)
    max_stagger_minutes: int = Field(default=10080, ge=0)
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    max_due_per_run: int = Field(default=100, ge=1)
    processor_workers: int = Field(default=1, ge=1)
    # None disables the per-schedule timeout
    execution_timeout_seconds: float | None = Field(default=30.0, gt=0)

    @field_validator("default_timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown IANA timezone {value!r}") from e
        return value

    @model_validator(mode="after")
    def _page_sizes(self) -> "SchedulingRules":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self


class TriggerRules(BaseModel):
    # Environments in which the GET trigger answers 405
    get_disabled_in: list[str] = ["production"]


class OpsRules(BaseModel):
    data_dir_required: bool = True
    required_env: list[str] = []


class Rules(BaseModel):
    project: ProjectRules
    scheduling: SchedulingRules
    trigger: TriggerRules = TriggerRules()
    ops: OpsRules
