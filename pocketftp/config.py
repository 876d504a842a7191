import os
from pocketftp.errors import ConfigError

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def env_int(name, default):
    """Lee una variable de entorno entera; ConfigError si no es válida."""
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def env_timeout(name, default):
    # 0 desactiva el timeout
    value = env_int(name, default)
    return value if value > 0 else None


# Dirección de escucha del servidor (escuchar en todas las direcciones)
HOST = os.environ.get('FTP_HOST', '0.0.0.0')
PORT = env_int('FTP_PORT', 2121)

# Raíz real del servidor; nada fuera de aquí es visible para el cliente
SERVER_ROOT = os.environ.get('FTP_ROOT', os.path.join(BASE_DIR, 'data'))

# Única pareja de credenciales aceptada
FTP_USER = os.environ.get('FTP_USER', 'admin')
FTP_PASSWORD = os.environ.get('FTP_PASSWORD', 'admin')

# IP anunciada en PASV (útil detrás de NAT o en Docker)
PASV_ADDRESS = os.environ.get('FTP_PASV_ADDRESS', '').strip() or None

CONTROL_TIMEOUT = env_timeout('FTP_CONTROL_TIMEOUT', 180)   # 3 minutos de inactividad
DATA_TIMEOUT = env_timeout('FTP_DATA_TIMEOUT', 30)

LOG_LEVEL = os.environ.get('FTP_LOG_LEVEL', 'INFO')

CHUNK_SIZE = 8192
BANNER = "220 pocketftp ready"
