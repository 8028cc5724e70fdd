"""Pydantic v2 configuration schema with strict validation."""

from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class Weekday(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


_CLOCK = r"^([01]\d|2[0-4]):[0-5]\d$"


class OpeningHours(BaseModel):
    model_config = {"extra": "forbid"}

    day: Weekday
    open: str = Field(pattern=_CLOCK)
    close: str = Field(pattern=_CLOCK)  # "24:00" closes at midnight

    @model_validator(mode="after")
    def _check_order(self) -> "OpeningHours":
        if self.close <= self.open:
            raise ValueError(f"close {self.close} must be after open {self.open}")
        return self


class StoreConfig(BaseModel):
    model_config = {"extra": "forbid"}

    url: str = ""  # falls back to SUPABASE_URL
    orders_table: str = "orders"
    couriers_table: str = "funcionarios"
    courier_role: str = "entregador"
    settings_table: str = "store_settings"
    override_key: str = "manual_status"
    timeout_seconds: float = Field(default=30.0, gt=0.0)


class TransportConfig(BaseModel):
    model_config = {"extra": "forbid"}

    bridge_url: str = "http://127.0.0.1:3017"
    session_id: str = Field(default="default", min_length=1)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    country_code: str = Field(default="55", pattern=r"^\d{1,3}$")
    strip_mobile_ninth_digit: bool = True


class ConnectionConfig(BaseModel):
    model_config = {"extra": "forbid"}

    reconnect_base_seconds: float = Field(default=3.0, gt=0.0)
    max_reconnect_attempts: int = Field(default=5, ge=1)
    logout_retry_seconds: float = Field(default=2.0, ge=0.0)
    fallback_retry_seconds: float = Field(default=5.0, ge=0.0)
    restart_delay_seconds: float = Field(default=1.0, ge=0.0)


class PollingConfig(BaseModel):
    model_config = {"extra": "forbid"}

    interval_seconds: float = Field(default=10.0, gt=0.0)
    batch_limit: int = Field(default=10, ge=1, le=1000)
    processed_cap: int = Field(default=500, ge=1)
    track_status_changes: bool = True


class AvailabilityConfig(BaseModel):
    model_config = {"extra": "forbid"}

    override_ttl_seconds: float = Field(default=300.0, ge=0.0)
    timezone: str = "America/Fortaleza"
    hours: list[OpeningHours] = []


class DispatchConfig(BaseModel):
    model_config = {"extra": "forbid"}

    store_number: str = ""
    store_name: str = "Rei do Churrasco"
    courier_delay_ms: int = Field(default=500, ge=0)
    courier_cache_minutes: float = Field(default=5.0, ge=0.0)


class RotationConfig(BaseModel):
    model_config = {"extra": "forbid"}

    block_hours: float = Field(default=6.0, ge=0.0)
    retention_hours: float = Field(default=24.0, gt=0.0)
    history_limit: int = Field(default=2000, ge=1)


class ReplyConfig(BaseModel):
    model_config = {"extra": "forbid"}

    enabled: bool = True
    cooldown_minutes: float = Field(default=2.0, ge=0.0)
    message_delay_ms: int = Field(default=500, ge=0)
    site_url: str = ""
    address: str = ""
    contact_phone: str = ""


class PaymentKeyConfig(BaseModel):
    model_config = {"extra": "forbid"}

    label: str = Field(min_length=1)
    value: str = Field(min_length=1)
    owner_name: str = ""


class DaemonConfig(BaseModel):
    model_config = {"extra": "forbid"}

    idle_sleep_seconds: float = Field(default=1.0, gt=0.0)
    state_interval_seconds: float = Field(default=30.0, gt=0.0)


class NotifierConfig(BaseModel):
    model_config = {"extra": "forbid"}

    store: StoreConfig = StoreConfig()
    transport: TransportConfig = TransportConfig()
    connection: ConnectionConfig = ConnectionConfig()
    polling: PollingConfig = PollingConfig()
    availability: AvailabilityConfig = AvailabilityConfig()
    dispatch: DispatchConfig = DispatchConfig()
    rotation: RotationConfig = RotationConfig()
    replies: ReplyConfig = ReplyConfig()
    daemon: DaemonConfig = DaemonConfig()
    payment_keys: list[PaymentKeyConfig] = []
