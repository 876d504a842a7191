class FTPError(Exception):
    """Error base del servidor."""


class OutsideRootError(FTPError, PermissionError):
    """La ruta resuelta sale del root. El mensaje nunca incluye la ruta."""

    def __init__(self, message="Access outside of user root"):
        super().__init__(message)


class DataConnectionError(FTPError):
    """No hay listener PASV o el accept del canal de datos falló."""


class ControlConnectionError(FTPError):
    """Fallo escribiendo en el socket de control; la sesión debe terminar."""


class ConfigError(FTPError, ValueError):
    pass
