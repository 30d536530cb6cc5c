from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    broker_host: str = Field("localhost", validation_alias="BROKER_HOST")
    broker_port: int = Field(5672, validation_alias="BROKER_PORT")
    broker_user: str = Field("guest", validation_alias="BROKER_USER")
    broker_password: str = Field("guest", validation_alias="BROKER_PASSWORD")
    broker_vhost: str = Field("/", validation_alias="BROKER_VHOST")

    prefetch_count: int = Field(10, validation_alias="PREFETCH_COUNT")
    publisher_confirms: bool = Field(True, validation_alias="PUBLISHER_CONFIRMS")
    # Requeue flag used when the driver nacks a message whose middleware chain raised.
    error_requeue: bool = Field(False, validation_alias="ERROR_REQUEUE")

    initial_backoff_seconds: float = Field(0.5, validation_alias="INITIAL_BACKOFF_SECONDS")
    max_backoff_seconds: float = Field(30.0, validation_alias="MAX_BACKOFF_SECONDS")
    backoff_multiplier: float = Field(2.0, validation_alias="BACKOFF_MULTIPLIER")
    max_connection_attempts: int = Field(5, validation_alias="MAX_CONNECTION_ATTEMPTS")

    # "package.module:attribute" of the Application served by `warren`.
    app_target: str = Field("", validation_alias="APP_TARGET")

    @property
    def amqp_url(self) -> str:
        vhost = "" if self.broker_vhost == "/" else quote(self.broker_vhost, safe="")
        return (
            f"amqp://{quote(self.broker_user, safe='')}:{quote(self.broker_password, safe='')}"
            f"@{self.broker_host}:{self.broker_port}/{vhost}"
        )
