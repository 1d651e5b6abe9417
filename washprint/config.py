"""Application configuration."""
import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Printer device
    PRINTER_TYPE = os.environ.get("PRINTER_TYPE")  # serial, usb, network
    PRINTER_PORT = os.environ.get("PRINTER_PORT")  # e.g. /dev/ttyUSB0, COM3
    PRINTER_BAUDRATE = int(os.environ.get("PRINTER_BAUDRATE", 9600))
    PRINTER_HOST = os.environ.get("PRINTER_HOST")
    PRINTER_NETWORK_PORT = int(os.environ.get("PRINTER_NETWORK_PORT", 9100))
    PRINTER_VENDOR_ID = os.environ.get("PRINTER_VENDOR_ID")  # hex, e.g. 04b8
    PRINTER_PRODUCT_ID = os.environ.get("PRINTER_PRODUCT_ID")
    PRINTER_TIMEOUT = float(os.environ.get("PRINTER_TIMEOUT", 5.0))
    PRINTER_WIDTH = int(os.environ.get("PRINTER_WIDTH", 48))  # Characters per line

    # Printer behaviour
    PRINTER_POLL_INTERVAL = float(os.environ.get("PRINTER_POLL_INTERVAL", 5.0))  # 0 disables
    PRINTER_BATCH_DELAY = float(os.environ.get("PRINTER_BATCH_DELAY", 5.0))
    PRINTER_AUTO_RECONNECT = _env_bool("PRINTER_AUTO_RECONNECT", True)
    PRINTER_IS_HOSTED = _env_bool("PRINTER_IS_HOSTED", False)

    # Logging
    LOG_FILE = os.environ.get("LOG_FILE", os.path.join(os.path.dirname(basedir), "logs", "washprint.log"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{os.path.join(os.path.dirname(basedir), 'instance', 'washprint.db')}"
    )


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{os.path.join(os.path.dirname(basedir), 'instance', 'washprint.db')}"
    )


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    PRINTER_TYPE = None
    PRINTER_POLL_INTERVAL = 0
    PRINTER_BATCH_DELAY = 0
    PRINTER_AUTO_RECONNECT = False


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def printer_device(settings) -> dict:
    """Build create_printer parameters from PRINTER_* settings.

    Returns an empty dict when no printer type is configured.
    """
    printer_type = (settings.get("PRINTER_TYPE") or "").lower()
    timeout = settings.get("PRINTER_TIMEOUT", 5.0)
    if printer_type == "serial":
        return {
            "type": "serial",
            "port": settings.get("PRINTER_PORT"),
            "baudrate": settings.get("PRINTER_BAUDRATE", 9600),
            "timeout": timeout,
        }
    if printer_type == "network":
        return {
            "type": "network",
            "ip": settings.get("PRINTER_HOST"),
            "port": settings.get("PRINTER_NETWORK_PORT", 9100),
            "timeout": timeout,
        }
    if printer_type == "usb":
        return {
            "type": "usb",
            "vendor_id": settings.get("PRINTER_VENDOR_ID"),
            "product_id": settings.get("PRINTER_PRODUCT_ID"),
            "timeout": timeout,
        }
    return {}
