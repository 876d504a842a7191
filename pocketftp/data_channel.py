import socket
from contextlib import contextmanager
from pocketftp.errors import DataConnectionError
from pocketftp.log import setup_logger

logger = setup_logger(__name__)


class DataChannel:
    """
    Canal de datos en modo pasivo de una sesión.

    Como mucho un listener y una conexión aceptada a la vez; abrir uno
    nuevo cierra antes el anterior.
    """

    def __init__(self, timeout=None, bind_host=''):
        self.timeout = timeout
        self.bind_host = bind_host
        self.listener = None
        self.connection = None

    @property
    def is_open(self):
        return self.listener is not None

    def open_passive(self):
        """Cierra lo anterior y abre un listener en un puerto efímero. Devuelve el puerto."""
        self.close_all()
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.bind((self.bind_host, 0))   # puerto asignado por el SO
            listener.listen(1)
        except OSError:
            listener.close()
            raise
        self.listener = listener
        port = listener.getsockname()[1]
        logger.debug(f"[PASV] Listener abierto en el puerto {port}")
        return port

    def accept_one(self):
        """Espera exactamente una conexión de datos. DataConnectionError si no llega."""
        listener = self.listener
        if listener is None:
            raise DataConnectionError("No passive listener")
        try:
            listener.settimeout(self.timeout)
            conn, addr = listener.accept()
        except socket.timeout:
            logger.warning("[PASV] Timeout esperando conexión del cliente")
            raise DataConnectionError("Timed out waiting for data connection")
        except OSError as e:
            logger.warning(f"[PASV] Error aceptando conexión: {e}")
            raise DataConnectionError(str(e))
        conn.settimeout(self.timeout)
        self.connection = conn
        logger.debug(f"[PASV] Conexión de datos desde {addr}")
        return conn

    def close_all(self):
        """
        Cierra conexión y listener si existen. Los errores de cierre solo se
        registran. Se puede llamar desde otro hilo (FTPServer.stop).
        """
        connection, self.connection = self.connection, None
        listener, self.listener = self.listener, None
        if connection is not None:
            try:
                connection.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                connection.close()
            except OSError as e:
                logger.debug(f"[DATA] Error cerrando socket de datos: {e}")
        if listener is not None:
            # shutdown desbloquea un accept() pendiente en otro hilo; close() solo no
            try:
                listener.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                listener.close()
            except OSError as e:
                logger.debug(f"[DATA] Error cerrando listener: {e}")

    @contextmanager
    def transfer(self):
        """
        Acepta una conexión y la entrega al bloque; al salir, con éxito o
        con error, cierra conexión y listener.
        """
        try:
            yield self.accept_one()
        finally:
            self.close_all()
