import socket
import threading
import pocketftp.commands as command
from pocketftp import config
from pocketftp.data_channel import DataChannel
from pocketftp.errors import ControlConnectionError
from pocketftp.log import setup_logger
from pocketftp.paths import canonical_root

logger = setup_logger(__name__)

# Intervalo con el que el bucle de accept comprueba si debe parar
ACCEPT_POLL_INTERVAL = 0.5

# Longitud máxima de una línea de control
MAX_LINE = 8192


class Session: # Estado de una conexión de control
    def __init__(self, client_socket, client_addr, root_dir, username, password,
                 data_timeout=None, pasv_address=None):
        self.client_socket = client_socket
        self.client_addr = client_addr
        self.client_ip = client_addr[0] if client_addr else None
        self.username = username
        self.password = password
        self.pending_user = None
        self.logged_in = False
        self.root_dir = canonical_root(root_dir)
        self.current_dir = self.root_dir
        self.pasv_address = pasv_address
        self.data_channel = DataChannel(timeout=data_timeout)

    def reply(self, message):
        """Envía una línea de respuesta. ControlConnectionError si el socket falla."""
        logger.debug(f"[CORE] RSP {self.client_ip}: {message}")
        try:
            self.client_socket.sendall(f"{message}\r\n".encode('utf-8', errors='surrogateescape'))
        except OSError as e:
            raise ControlConnectionError(str(e)) from e

    def close(self):
        self.data_channel.close_all()
        try:
            self.client_socket.close()
        except OSError as e:
            logger.debug(f"[CORE] Error cerrando socket de control: {e}")

# --- PARSING Y CONTROL ---

def _loggable(cmd, arg):
    if cmd == "PASS":
        return "PASS ****"
    return f"{cmd} {arg}".rstrip()


def handle_command_line(line, session):
    """
    Devuelve True si se debe terminar la conexión (QUIT), False en otro caso.
    Actualiza session segun comandos.
    """
    cmd, arg = command.parse_command(line)
    if not cmd:
        return False
    logger.debug(f"[CORE] CMD {session.client_ip}: {_loggable(cmd, arg)}")
    return command.dispatch(cmd, arg, session)


def _discard_rest_of_line(reader, chunk):
    """Consume hasta el fin de línea. False si el cliente cierra antes."""
    while not chunk.endswith(b'\n'):
        chunk = reader.readline(MAX_LINE + 1)
        if not chunk:
            return False
    return True


def run_session(session, control_timeout=None):
    """
    Bucle de comandos de una sesión: una línea, un comando, una respuesta.
    Termina con QUIT, EOF, timeout o error en el canal de control.
    """
    address = session.client_addr
    reader = None
    try:
        session.client_socket.settimeout(control_timeout)
        reader = session.client_socket.makefile('rb')
        session.reply(config.BANNER)
        while True:
            try:
                raw = reader.readline(MAX_LINE + 1)
                too_long = len(raw) > MAX_LINE
                if too_long and not _discard_rest_of_line(reader, raw):
                    raw = b''
            except socket.timeout:
                logger.info(f"[CORE] Timeout de inactividad con {address}")
                session.reply("421 Service timeout.")
                break
            if not raw:
                logger.info(f"[CORE] El cliente {address} cerró la conexión")
                break
            if too_long:
                logger.warning(f"[CORE] Línea de comando demasiado larga desde {address}")
                session.reply("500 Command line too long.")
                continue
            line = raw.decode('utf-8', errors='surrogateescape')
            if handle_command_line(line, session):
                break
    except ControlConnectionError as e:
        logger.info(f"[CORE] Canal de control perdido con {address}: {e}")
    except OSError as e:
        logger.info(f"[CORE] Error de E/S en el canal de control con {address}: {e}")
    finally:
        logger.info(f"[CORE] Conexión cerrada con {address}")
        if reader is not None:
            reader.close()
        session.close()


class FTPServer:
    """Acepta conexiones de control y lanza un hilo independiente por sesión."""

    def __init__(self, root_dir, username, password, host=config.HOST, port=config.PORT,
                 control_timeout=config.CONTROL_TIMEOUT, data_timeout=config.DATA_TIMEOUT,
                 pasv_address=config.PASV_ADDRESS):
        self.root_dir = canonical_root(root_dir)
        self.username = username
        self.password = password
        self.host = host
        self.port = port
        self.control_timeout = control_timeout
        self.data_timeout = data_timeout
        self.pasv_address = pasv_address
        self.server_socket = None
        self.running = False
        self._accept_thread = None
        self._workers = []   # (thread, session); solo lo modifica el bucle de accept

    def bind(self):
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server_socket.bind((self.host, self.port))
            server_socket.listen(5)
        except OSError:
            server_socket.close()
            raise
        server_socket.settimeout(ACCEPT_POLL_INTERVAL)
        self.server_socket = server_socket
        self.port = server_socket.getsockname()[1]
        self.running = True
        logger.info(f"[CORE] Servidor FTP escuchando en {self.host}:{self.port} (root: {self.root_dir})")

    def new_session(self, client_socket, address):
        return Session(client_socket, address, self.root_dir, self.username, self.password,
                       data_timeout=self.data_timeout, pasv_address=self.pasv_address)

    def serve_forever(self):
        while self.running:
            try:
                client_socket, address = self.server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"[CORE] Error en accept: {e}")
                break

            logger.info(f"[CORE] Conexión establecida desde {address}")
            session = self.new_session(client_socket, address)
            t = threading.Thread(target=run_session, args=(session, self.control_timeout),
                                 name=f"ftp-session-{address[0]}:{address[1]}", daemon=True)
            t.start()
            self._workers = [(w, s) for w, s in self._workers if w.is_alive()]
            self._workers.append((t, session))
        logger.info("[CORE] Bucle de accept terminado")

    def start(self):
        """Abre el socket de escucha y atiende conexiones en un hilo aparte."""
        self.bind()
        self._accept_thread = threading.Thread(target=self.serve_forever, name="ftp-acceptor", daemon=True)
        self._accept_thread.start()
        return self

    def stop(self, join_timeout=5.0):
        """Cierra el listener, espera al bucle de accept y corta las sesiones vivas."""
        self.running = False
        if self.server_socket is not None:
            try:
                self.server_socket.close()
            except OSError as e:
                logger.debug(f"[CORE] Error cerrando socket de escucha: {e}")
        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(join_timeout)

        for t, session in self._workers:
            if t.is_alive():
                try:
                    session.client_socket.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
                # Despierta a la sesión si está esperando la conexión de datos
                session.data_channel.close_all()
        for t, _ in self._workers:
            t.join(join_timeout)
        self._workers = []
        logger.info("[CORE] Servidor FTP detenido")

    def active_sessions(self):
        return sum(1 for t, _ in self._workers if t.is_alive())


def start_server(port, root_dir, username, password, host=config.HOST, **options):
    """Arranca el servidor en segundo plano y devuelve el handle para stop_server()."""
    server = FTPServer(root_dir, username, password, host=host, port=port, **options)
    return server.start()


def stop_server(server):
    server.stop()
