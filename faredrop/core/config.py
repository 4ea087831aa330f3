from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    app_title: str = 'FareDrop'
    app_description: str = 'Flight price watches and price-drop alerts'
    api_prefix: str = '/v1'
    database_url: str = Field(
        default='sqlite+aiosqlite:///./faredrop.db',
        json_schema_extra={'env': 'DATABASE_URL'}
    )
    test_database_url: str = Field(
        default='sqlite+aiosqlite:///./test_faredrop.db',
        json_schema_extra={'env': 'TEST_DATABASE_URL'}
    )
    database_echo: bool = False

    watches_table: str = 'faredrop_watches'
    snapshots_table: str = 'faredrop_price_snapshots'

    cors_allowed_origins: list[str] = ['http://localhost:3000']

    jwt_secret: str = 'change-me'
    jwt_algorithm: str = 'HS256'
    jwt_audience: Optional[str] = None

    amadeus_base_url: str = 'https://test.api.amadeus.com'
    amadeus_client_id: Optional[str] = None
    amadeus_client_secret: Optional[str] = None

    notification_sender: Optional[str] = None
    notification_recipient: Optional[str] = None
    notification_region: str = 'us-east-1'
    smtp_server: Optional[str] = None
    smtp_port: int = 465
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None

    poll_interval_hours: int = 6
    poll_delay_seconds: float = 0.5
    alert_cooldown_hours: int = 24
    snapshot_retention_days: int = 7
    history_requires_owner: bool = False
    scheduler_enabled: bool = True

    model_config = SettingsConfigDict(
        extra='allow',
        env_file='.env',
        env_file_encoding='utf-8',
    )

    def get_database_url(self, test: bool = False) -> str:
        return self.test_database_url if test else self.database_url

    def get_smtp_server(self) -> str:
        if self.smtp_server:
            return self.smtp_server
        return f'email-smtp.{self.notification_region}.amazonaws.com'

    def get_notification_recipient(self) -> Optional[str]:
        return self.notification_recipient or self.notification_sender


settings = Settings()
