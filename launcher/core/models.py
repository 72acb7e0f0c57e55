"""Data models for the executor launcher.

Uses Pydantic for the immutable launch request and the typed outputs each
pipeline stage hands to the next one.
"""

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field


class TaskLaunchSpec(BaseModel):
    """Everything the slave tells us about one executor launch."""

    model_config = ConfigDict(frozen=True)

    framework_id: str
    slave_pid: str
    executor_ref: str  # Local path or remote URI (hdfs://...)
    user: str = ""  # Only used when switch_user is set
    work_directory: str
    mesos_home: str = ""  # "" means unset
    hadoop_home: str = ""  # "" means unset
    redirect_io: bool = False
    switch_user: bool = False
    params: dict[str, str] = Field(default_factory=dict)


class Account(BaseModel):
    """OS account the executor runs as after the privilege drop."""

    model_config = ConfigDict(frozen=True)

    name: str
    uid: int
    gid: int
    home: str = ""


# --- Stage outputs ---


class PreparedSandbox(BaseModel):
    """Working directory that exists and is the current directory."""

    model_config = ConfigDict(frozen=True)

    path: str
    redirected_io: bool = False
    owner: Account | None = None  # Set when the directory was chowned


class ResolvedExecutor(BaseModel):
    """Local executable produced by the resolver."""

    model_config = ConfigDict(frozen=True)

    path: str
    fetched: bool = False
    extracted: bool = False
    directory: str | None = None  # Directory entered after extraction


class EnvironmentOverlay(BaseModel):
    """Variables layered on top of the inherited environment at exec time."""

    model_config = ConfigDict(frozen=True)

    variables: dict[str, str] = Field(default_factory=dict)

    def apply(self, base: Mapping[str, str]) -> dict[str, str]:
        """Return a copy of ``base`` with the overlay written over it."""
        merged = dict(base)
        merged.update(self.variables)
        return merged


class PrivilegeState(BaseModel):
    """Identity the process holds right before exec."""

    model_config = ConfigDict(frozen=True)

    switched: bool = False
    user: str | None = None
    uid: int | None = None
    gid: int | None = None
