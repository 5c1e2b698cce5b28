"""
Application configuration loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Relay board / buzzer connection: "serial", "telnet" or "multi"
    connection_mode: str = "serial"
    serial_port: str = "/dev/ttyUSB0"
    serial_baudrate: int = 9600
    serial_read_timeout: float = 1.0
    telnet_addr: str = ""
    relays_host: str = "esp32-1.local"
    buzzer_host: str = "esp32-2.local"
    dial_timeout: float = 5.0

    # ClickHouse (relay labels)
    clickhouse_host: str = "localhost"
    clickhouse_port: int = 8123
    clickhouse_database: str = "relaypanel"
    clickhouse_user: str = "admin"
    clickhouse_password: str = ""

    # TV remote over adb
    adb_host: str = "192.168.1.11"
    adb_port: int = 36275
    adb_path: str = "adb"
    adb_timeout: float = 10.0

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 42069
    static_dir: str = "static"
    status_interval: float = 15.0
    log_level: str = "INFO"
    log_color: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
